from __future__ import annotations

import logging
from typing import List

from ..config import ProviderSettings
from ..errors import ProviderError
from .fixture import FixtureProvider

logger = logging.getLogger(__name__)


def provider_problems(settings: ProviderSettings) -> List[str]:
    errors: List[str] = []
    for name, path in sorted(settings.fixtures.items()):
        if not path.exists():
            errors.append(f"{name}: fixture file {path} does not exist")
            continue
        try:
            count = len(FixtureProvider(name, path).search(""))
        except ProviderError as exc:
            errors.append(str(exc))
            continue
        logger.debug("%s fixture provides %d result(s)", name, count)
    return errors
