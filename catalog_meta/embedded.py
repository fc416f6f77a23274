from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol

from .models import EmbeddedRecord

logger = logging.getLogger(__name__)


class TagExtractor(Protocol):
    def extract(self, path: Path) -> Optional[EmbeddedRecord]: ...


class NullTagExtractor:
    """Extractor used until real tag reading exists; never yields a record."""

    def extract(self, path: Path) -> Optional[EmbeddedRecord]:
        logger.debug("Embedded tag extraction is not available for %s", path)
        return None
