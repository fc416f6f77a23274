from __future__ import annotations

from typing import Optional


class CatalogMetaError(Exception):
    """Base class for every error raised by the metadata engine."""


class ValidationError(CatalogMetaError, ValueError):
    """Raised when a mutation is malformed; nothing has been written yet."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"validation error on field '{field}': {message}")
        self.field = field
        self.message = message


class NotFoundError(CatalogMetaError, LookupError):
    """Raised when a catalog item or agent record does not exist."""


class ProviderError(CatalogMetaError):
    """Raised when a provider adapter fails; the item is left unchanged."""

    def __init__(self, provider: str, message: str, *, retryable: bool = True) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.retryable = retryable


class StorageError(CatalogMetaError):
    """Raised when a transaction fails; the transaction has been rolled back."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause
