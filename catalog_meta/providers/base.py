from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import ProviderError, ValidationError
from ..models import AgentRecord


class _ResultPayload(BaseModel):
    """Schema a provider payload must satisfy before it becomes a ProviderResult."""

    model_config = ConfigDict(extra="forbid", coerce_numbers_to_str=True)

    title: Optional[str] = None
    subtitle: Optional[str] = None
    author: Optional[str] = None
    narrator: Optional[str] = None
    description: Optional[str] = None
    cover_url: Optional[str] = None
    publisher: Optional[str] = None
    published_year: Optional[str] = None
    language: Optional[str] = None
    isbn: Optional[str] = None
    asin: Optional[str] = None
    duration_min: Optional[float] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    series_name: Optional[str] = None
    series_sequence: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    confidence: Optional[float] = None

    @field_validator("genres", "tags", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


@dataclass(slots=True)
class ProviderResult:
    """A metadata match returned by a provider adapter."""

    provider: str
    external_id: str
    title: Optional[str] = None
    subtitle: Optional[str] = None
    author: Optional[str] = None
    narrator: Optional[str] = None
    description: Optional[str] = None
    cover_url: Optional[str] = None
    publisher: Optional[str] = None
    published_year: Optional[str] = None
    language: Optional[str] = None
    isbn: Optional[str] = None
    asin: Optional[str] = None
    duration_min: Optional[float] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    series_name: Optional[str] = None
    series_sequence: Optional[str] = None
    genres: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    confidence: Optional[float] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, provider: Optional[str] = None) -> "ProviderResult":
        data = dict(payload)
        source = provider or data.pop("provider", None)
        data.pop("provider", None)
        external_id = data.pop("external_id", None)
        if not source or not external_id:
            raise ValidationError("external_id", "provider results need a provider and an external_id")
        try:
            checked = _ResultPayload.model_validate(data)
        except pydantic.ValidationError as exc:
            first = exc.errors()[0]
            name = ".".join(str(part) for part in first["loc"]) or "result"
            raise ValidationError(name, first["msg"]) from exc
        return cls(provider=str(source), external_id=str(external_id), **checked.model_dump())

    def to_agent_record(self) -> AgentRecord:
        """Map this result 1:1 onto the agent tier's columns."""
        if not self.provider or not self.external_id:
            raise ValidationError("external_id", "provider results need a provider and an external_id")
        genres = [genre.strip() for genre in (self.genres or []) if genre and genre.strip()]
        return AgentRecord(
            source=self.provider,
            external_id=self.external_id,
            title=_text(self.title),
            subtitle=_text(self.subtitle),
            author=_text(self.author),
            narrator=_text(self.narrator),
            description=_text(self.description),
            cover_url=_text(self.cover_url),
            series_name=_text(self.series_name),
            series_sequence=_text(self.series_sequence),
            release_date=_text(self.published_year),
            isbn=_text(self.isbn),
            asin=_text(self.asin),
            language=_text(self.language),
            publisher=_text(self.publisher),
            duration_sec=float(self.duration_min) * 60 if self.duration_min is not None else None,
            rating=self.rating,
            rating_count=self.rating_count,
            genres=json.dumps(genres) if genres else None,
        )


class MetadataProvider(Protocol):
    name: str

    def search(self, title: str, author: Optional[str] = None) -> List[ProviderResult]: ...

    def fetch_by_external_id(self, external_id: str) -> ProviderResult: ...


class ProviderRegistry:
    """Named provider adapters available to the link service."""

    def __init__(self, providers: Optional[List[MetadataProvider]] = None, default: Optional[str] = None) -> None:
        self._providers: Dict[str, MetadataProvider] = {}
        for provider in providers or []:
            self.register(provider)
        self.default = default

    def register(self, provider: MetadataProvider) -> None:
        self._providers[provider.name] = provider

    def names(self) -> List[str]:
        return sorted(self._providers)

    def has(self, name: str) -> bool:
        return name in self._providers

    def get(self, name: Optional[str] = None) -> MetadataProvider:
        key = name or self.default
        if not key:
            raise ProviderError("registry", "no provider name given and no default configured", retryable=False)
        try:
            return self._providers[key]
        except KeyError:
            raise ProviderError(key, "provider is not configured", retryable=False) from None


def _text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None
