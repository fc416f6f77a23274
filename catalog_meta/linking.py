from __future__ import annotations

import logging
from typing import List, Optional

from .errors import CatalogMetaError, NotFoundError, ProviderError
from .match_utils import author_similarity, combine_similarity, title_similarity
from .models import AgentRecord
from .providers.base import ProviderRegistry, ProviderResult
from .store import CatalogStore

logger = logging.getLogger(__name__)


class AgentLinkService:
    """Links catalog items to shared agent records and back.

    Linking never touches the custom tier, so locked fields keep their values
    however often an item is re-matched.
    """

    def __init__(self, store: CatalogStore, providers: Optional[ProviderRegistry] = None) -> None:
        self.store = store
        self.providers = providers or ProviderRegistry()

    def search(self, title: str, author: Optional[str] = None, *, provider: Optional[str] = None) -> List[ProviderResult]:
        adapter = self.providers.get(provider)
        try:
            results = adapter.search(title, author)
        except CatalogMetaError:
            raise
        except Exception as exc:
            logger.warning("Search via %s failed: %s", adapter.name, exc)
            raise ProviderError(adapter.name, f"search failed: {exc}") from exc
        return sorted(results, key=lambda result: -_match_score(result, title, author))

    def link(self, item_id: str, result: ProviderResult) -> AgentRecord:
        record = result.to_agent_record()
        with self.store.transaction():
            self.store.require_item(item_id)
            agent = self.store.upsert_agent(record)
            self.store.set_item_agent(item_id, agent.id)
        logger.info("Linked %s to %s:%s", item_id, agent.source, agent.external_id)
        return agent

    def link_external(self, item_id: str, external_id: str, *, provider: Optional[str] = None) -> AgentRecord:
        """Fetch ``external_id`` from a provider adapter and link it.

        A provider name without a configured adapter falls back to a stored
        agent record with that source, so previously fetched matches can be
        re-linked offline.
        """
        self.store.require_item(item_id)
        name = provider or self.providers.default
        if name and not self.providers.has(name):
            stored = self.store.get_agent_by_key(name, external_id)
            if stored is None:
                raise ProviderError(name, "provider is not configured", retryable=False)
            with self.store.transaction():
                self.store.require_item(item_id)
                self.store.set_item_agent(item_id, stored.id)
            logger.info("Linked %s to stored record %s:%s", item_id, name, external_id)
            return stored
        adapter = self.providers.get(name)
        try:
            result = adapter.fetch_by_external_id(external_id)
        except CatalogMetaError:
            raise
        except Exception as exc:
            logger.warning("Fetching %s from %s failed: %s", external_id, adapter.name, exc)
            raise ProviderError(adapter.name, f"fetch failed for {external_id}: {exc}") from exc
        if result is None:
            raise NotFoundError(f"{adapter.name}: no result with external id {external_id}")
        return self.link(item_id, result)

    def unlink(self, item_id: str, *, preserve_locked: bool = True) -> int:
        """Drop the agent reference; returns the number of custom fields cleared."""
        cleared = 0
        with self.store.transaction():
            self.store.require_item(item_id)
            self.store.set_item_agent(item_id, None)
            if not preserve_locked:
                cleared = self.store.delete_custom_fields(item_id)
        logger.info(
            "Unlinked %s (%s)",
            item_id,
            "locked fields kept" if preserve_locked else f"{cleared} custom field(s) cleared",
        )
        return cleared


def _match_score(result: ProviderResult, title: str, author: Optional[str]) -> float:
    if result.confidence is not None:
        return result.confidence
    score = combine_similarity(
        title_similarity(result.title, title),
        author_similarity(result.author, author),
    )
    return score or 0.0
