from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import NotFoundError, ProviderError, ValidationError
from ..match_utils import normalize_match_text
from .base import ProviderResult

logger = logging.getLogger(__name__)


class FixtureProvider:
    """Offline provider adapter that serves results from a JSON file.

    The file holds either a list of result objects or ``{"results": [...]}``.
    Every result is attributed to this provider's name.
    """

    def __init__(self, name: str, path: Path) -> None:
        self.name = name
        self.path = Path(path)
        self._results: Optional[Dict[str, ProviderResult]] = None

    def search(self, title: str, author: Optional[str] = None) -> List[ProviderResult]:
        wanted_title = normalize_match_text(title or "")
        wanted_author = normalize_match_text(author or "")
        matches: List[ProviderResult] = []
        for result in self._load().values():
            if wanted_title and wanted_title not in normalize_match_text(result.title or ""):
                continue
            if wanted_author and wanted_author not in normalize_match_text(result.author or ""):
                continue
            matches.append(result)
        logger.debug("%s search %r/%r -> %d result(s)", self.name, title, author, len(matches))
        return matches

    def fetch_by_external_id(self, external_id: str) -> ProviderResult:
        try:
            return self._load()[external_id]
        except KeyError:
            raise NotFoundError(f"{self.name}: no result with external id {external_id}") from None

    def _load(self) -> Dict[str, ProviderResult]:
        if self._results is not None:
            return self._results
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except OSError as exc:
            raise ProviderError(self.name, f"unable to read {self.path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise ProviderError(self.name, f"{self.path} is not valid JSON: {exc}", retryable=False) from exc
        if isinstance(payload, dict):
            payload = payload.get("results", [])
        if not isinstance(payload, list):
            raise ProviderError(self.name, f"{self.path} must contain a list of results", retryable=False)
        results: Dict[str, ProviderResult] = {}
        for raw in payload:
            if not isinstance(raw, dict):
                continue
            try:
                result = ProviderResult.from_dict(raw, provider=self.name)
            except (TypeError, ValidationError) as exc:
                raise ProviderError(self.name, f"malformed result in {self.path}: {exc}", retryable=False) from exc
            results[result.external_id] = result
        self._results = results
        return results
