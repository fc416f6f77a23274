from __future__ import annotations

from dataclasses import dataclass, field, fields as dataclass_fields
from typing import Any, Dict, List, Optional

from .fields import FIELDS, field_spec

BOOKKEEPING_FIELDS = ("id", "source", "external_id", "created_at", "updated_at")


@dataclass(slots=True)
class AgentRecord:
    """Metadata contributed by an external provider, shared between items."""

    source: str
    external_id: str
    id: Optional[str] = None
    title: Optional[str] = None
    subtitle: Optional[str] = None
    author: Optional[str] = None
    narrator: Optional[str] = None
    description: Optional[str] = None
    cover_url: Optional[str] = None
    series_name: Optional[str] = None
    series_sequence: Optional[str] = None
    release_date: Optional[str] = None
    isbn: Optional[str] = None
    asin: Optional[str] = None
    language: Optional[str] = None
    publisher: Optional[str] = None
    duration_sec: Optional[float] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    genres: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        return self.source, self.external_id

    def value(self, name: str) -> Any:
        return getattr(self, name)

    def to_record(self) -> Dict[str, object]:
        return _to_record(self)


@dataclass(slots=True)
class EmbeddedRecord:
    """Raw tag values read from an item's media files (1:1 per item)."""

    item_id: Optional[str] = None
    title: Optional[str] = None
    subtitle: Optional[str] = None
    author: Optional[str] = None
    narrator: Optional[str] = None
    album: Optional[str] = None
    genre: Optional[str] = None
    year: Optional[str] = None
    track_number: Optional[str] = None
    comment: Optional[str] = None
    series_name: Optional[str] = None
    series_sequence: Optional[str] = None
    cover: Optional[bytes] = None
    cover_mime_type: Optional[str] = None
    extracted_at: Optional[str] = None

    def value(self, name: str) -> Optional[str]:
        column = field_spec(name).embedded_column
        if column is None:
            return None
        return getattr(self, column)

    def to_record(self) -> Dict[str, object]:
        payload = _to_record(self)
        payload["cover"] = f"<{len(self.cover)} bytes>" if self.cover else None
        return payload


@dataclass(frozen=True, slots=True)
class CustomField:
    """A locked, user-owned value for one field of one item."""

    field: str
    value: Optional[str]
    locked: bool = True
    updated_at: Optional[str] = None
    updated_by: Optional[str] = None

    def to_record(self) -> Dict[str, object]:
        return {"value": self.value, "locked": self.locked}


@dataclass(slots=True)
class ResolvedMetadata:
    """The effective metadata of one item. Recomputed on every read."""

    id: Optional[str] = None
    source: Optional[str] = None
    external_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    title: Optional[str] = None
    subtitle: Optional[str] = None
    author: Optional[str] = None
    narrator: Optional[str] = None
    description: Optional[str] = None
    cover_url: Optional[str] = None
    series_name: Optional[str] = None
    series_sequence: Optional[str] = None
    release_date: Optional[str] = None
    isbn: Optional[str] = None
    asin: Optional[str] = None
    language: Optional[str] = None
    publisher: Optional[str] = None
    genres: Optional[str] = None
    duration_sec: Optional[float] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    sources: Dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> Any:
        return getattr(self, field_spec(name).name)

    def source_of(self, name: str) -> Optional[str]:
        return self.sources.get(field_spec(name).name)

    def present(self) -> Dict[str, Any]:
        """Non-empty metadata fields only, without bookkeeping."""
        values: Dict[str, Any] = {}
        for name in FIELDS:
            value = getattr(self, name)
            if value is None or value == "":
                continue
            values[name] = value
        return values

    def to_record(self) -> Dict[str, object]:
        return _to_record(self)


@dataclass(slots=True)
class MediaFile:
    filename: str
    id: Optional[str] = None
    item_id: Optional[str] = None
    duration_sec: float = 0.0
    mime_type: str = "application/octet-stream"

    def to_record(self) -> Dict[str, object]:
        return _to_record(self)


@dataclass(slots=True)
class CatalogItem:
    id: str
    asset_path: str
    agent_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    media_files: List[MediaFile] = field(default_factory=list)

    @property
    def linked(self) -> bool:
        return self.agent_id is not None

    @property
    def total_duration_sec(self) -> float:
        return sum(media.duration_sec for media in self.media_files)

    def to_record(self) -> Dict[str, object]:
        payload = _to_record(self)
        payload["media_files"] = [media.to_record() for media in self.media_files]
        return payload


@dataclass(slots=True)
class MetadataLayers:
    """Unmerged per-tier view of an item, used for provenance display."""

    agent: Optional[AgentRecord] = None
    embedded: Optional[EmbeddedRecord] = None
    custom: Dict[str, CustomField] = field(default_factory=dict)

    def to_record(self) -> Dict[str, object]:
        return {
            "agent": self.agent.to_record() if self.agent else None,
            "embedded": self.embedded.to_record() if self.embedded else None,
            "custom": {name: entry.to_record() for name, entry in sorted(self.custom.items())},
        }


def _to_record(obj: Any) -> Dict[str, object]:
    return {f.name: _serialize(getattr(obj, f.name)) for f in dataclass_fields(obj)}


def _serialize(value: object) -> object:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _serialize(v) for k, v in value.items()}
    return value
