from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .config import Settings
from .embedded import NullTagExtractor, TagExtractor
from .errors import ValidationError
from .linking import AgentLinkService
from .models import CatalogItem, EmbeddedRecord, MediaFile, MetadataLayers, ResolvedMetadata
from .overrides import OverrideService
from .providers import FixtureProvider, ProviderRegistry
from .resolver import DEFAULT_TIERS, Tier, resolve
from .scanner import MediaScanner
from .store import CatalogStore

logger = logging.getLogger(__name__)


@dataclass
class CatalogMetaApp:
    settings: Settings
    store: CatalogStore
    providers: ProviderRegistry
    overrides: OverrideService
    links: AgentLinkService
    scanner: MediaScanner
    extractor: TagExtractor = field(default_factory=NullTagExtractor)
    tiers: Tuple[Tier, ...] = DEFAULT_TIERS

    @classmethod
    def create(
        cls,
        settings: Settings,
        *,
        store: Optional[CatalogStore] = None,
        providers: Optional[ProviderRegistry] = None,
        extractor: Optional[TagExtractor] = None,
        tiers: Tuple[Tier, ...] = DEFAULT_TIERS,
    ) -> "CatalogMetaApp":
        store = store or CatalogStore(settings.storage.database_path)
        if providers is None:
            providers = ProviderRegistry(default=settings.providers.default)
            for name, path in settings.providers.fixtures.items():
                providers.register(FixtureProvider(name, path))
        return cls(
            settings=settings,
            store=store,
            providers=providers,
            overrides=OverrideService(store, tiers=tiers),
            links=AgentLinkService(store, providers),
            scanner=MediaScanner(settings.library),
            extractor=extractor or NullTagExtractor(),
            tiers=tiers,
        )

    def get_resolved(self, item_id: str) -> ResolvedMetadata:
        layers = self.store.load_layers(item_id)
        return resolve(layers.agent, layers.embedded, layers.custom, tiers=self.tiers)

    def get_layers(self, item_id: str) -> MetadataLayers:
        return self.store.load_layers(item_id)

    def register_item(
        self,
        item_id: str,
        asset_path: Path,
        media_files: Optional[Iterable[MediaFile]] = None,
    ) -> CatalogItem:
        item_id = (item_id or "").strip()
        if not item_id:
            raise ValidationError("id", "catalog items need a non-empty id")
        if self.store.get_item(item_id) is not None:
            raise ValidationError("id", f"catalog item already exists: {item_id}")
        files = list(media_files) if media_files is not None else self.scanner.collect(asset_path)
        item = self.store.create_item(item_id, asset_path, files)
        logger.info("Registered %s with %d media file(s)", item_id, len(item.media_files))
        return item

    def get_item(self, item_id: str) -> CatalogItem:
        return self.store.require_item(item_id)

    def list_items(self) -> List[CatalogItem]:
        return self.store.list_items()

    def delete_item(self, item_id: str) -> None:
        self.store.require_item(item_id)
        self.store.delete_item(item_id)
        logger.info("Deleted %s", item_id)

    def set_embedded(self, item_id: str, record: EmbeddedRecord) -> None:
        with self.store.transaction():
            self.store.require_item(item_id)
            self.store.upsert_embedded(item_id, record)

    def refresh_embedded(self, item_id: str) -> Optional[EmbeddedRecord]:
        """Run the tag extractor over the item; keeps the old record when it yields nothing."""
        item = self.store.require_item(item_id)
        record = self.extractor.extract(Path(item.asset_path))
        if record is None:
            logger.info("No embedded tags extracted for %s", item_id)
            return None
        self.set_embedded(item_id, record)
        return self.store.get_embedded(item_id)

    def close(self) -> None:
        self.store.close()
