from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .errors import ValidationError

# Canonical metadata field names shared by every tier.
# Keep these centralized to reduce magic strings and accidental divergence.

TITLE = "title"
SUBTITLE = "subtitle"
AUTHOR = "author"
NARRATOR = "narrator"
DESCRIPTION = "description"
COVER_URL = "cover_url"
SERIES_NAME = "series_name"
SERIES_SEQUENCE = "series_sequence"
RELEASE_DATE = "release_date"
ISBN = "isbn"
ASIN = "asin"
LANGUAGE = "language"
PUBLISHER = "publisher"
GENRES = "genres"
DURATION_SEC = "duration_sec"
RATING = "rating"
RATING_COUNT = "rating_count"

TEXT = "text"
FLOAT = "float"
INTEGER = "integer"


@dataclass(frozen=True, slots=True)
class FieldSpec:
    name: str
    kind: str = TEXT
    alias: Optional[str] = None
    embedded_column: Optional[str] = None

    @property
    def numeric(self) -> bool:
        return self.kind != TEXT


FIELD_SPECS: Tuple[FieldSpec, ...] = (
    FieldSpec(TITLE, embedded_column="title"),
    FieldSpec(SUBTITLE, embedded_column="subtitle"),
    FieldSpec(AUTHOR, embedded_column="author"),
    FieldSpec(NARRATOR, embedded_column="narrator"),
    FieldSpec(DESCRIPTION, embedded_column="comment"),
    FieldSpec(COVER_URL, alias="coverURL"),
    FieldSpec(SERIES_NAME, alias="seriesName", embedded_column="series_name"),
    FieldSpec(SERIES_SEQUENCE, alias="seriesSequence", embedded_column="series_sequence"),
    FieldSpec(RELEASE_DATE, alias="releaseDate", embedded_column="year"),
    FieldSpec(ISBN),
    FieldSpec(ASIN),
    FieldSpec(LANGUAGE),
    FieldSpec(PUBLISHER),
    FieldSpec(GENRES, embedded_column="genre"),
    FieldSpec(DURATION_SEC, kind=FLOAT, alias="durationSec"),
    FieldSpec(RATING, kind=FLOAT),
    FieldSpec(RATING_COUNT, kind=INTEGER, alias="ratingCount"),
)

FIELDS: Tuple[str, ...] = tuple(spec.name for spec in FIELD_SPECS)
NUMERIC_FIELDS: Tuple[str, ...] = tuple(spec.name for spec in FIELD_SPECS if spec.numeric)

_BY_NAME: Dict[str, FieldSpec] = {spec.name: spec for spec in FIELD_SPECS}
_ALIASES: Dict[str, str] = {spec.alias: spec.name for spec in FIELD_SPECS if spec.alias}


def canonical_field(name: str) -> str:
    """Map a field name or one of its camelCase aliases onto the canonical name."""
    if not isinstance(name, str):
        raise ValidationError(str(name), "field name must be a string")
    cleaned = name.strip()
    if cleaned in _BY_NAME:
        return cleaned
    if cleaned in _ALIASES:
        return _ALIASES[cleaned]
    raise ValidationError(cleaned, "unknown metadata field")


def field_spec(name: str) -> FieldSpec:
    return _BY_NAME[canonical_field(name)]


def parse_number(spec: FieldSpec, value: Optional[str]) -> Optional[float | int]:
    """Decode a stored custom value for a numeric field.

    An empty or missing value stays ``None``; it is never coerced to zero.
    """
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    try:
        if spec.kind == INTEGER:
            return int(cleaned)
        return float(cleaned)
    except ValueError as exc:
        raise ValidationError(spec.name, f"expected a {spec.kind} value, got {value!r}") from exc


def format_number(value: Optional[float | int]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float):
        return repr(value)
    return str(int(value))


def decode_genres(value: Optional[str]) -> List[str]:
    """Split a stored genres value back into a list.

    Agent records hold a JSON array; custom and embedded values are free text
    and are split on commas.
    """
    if not value or not value.strip():
        return []
    try:
        decoded = json.loads(value)
    except json.JSONDecodeError:
        decoded = None
    if isinstance(decoded, list):
        return [str(item) for item in decoded if str(item).strip()]
    return [part.strip() for part in value.split(",") if part.strip()]
