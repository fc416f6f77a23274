from __future__ import annotations

from .base import MetadataProvider, ProviderRegistry, ProviderResult
from .fixture import FixtureProvider

__all__ = [
    "FixtureProvider",
    "MetadataProvider",
    "ProviderRegistry",
    "ProviderResult",
]
