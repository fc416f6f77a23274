"""
Layered metadata resolution.

A field's effective value comes from the first source that has something to
say about it:

1. a locked custom entry (its value wins even when empty)
2. the ordered tier list, first non-empty value (agent, then embedded tags)
3. otherwise empty

Everything here is pure: no I/O, no caching, identical inputs give identical
output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from .errors import ValidationError
from .fields import FIELD_SPECS, field_spec, format_number, parse_number
from .models import BOOKKEEPING_FIELDS, AgentRecord, CustomField, EmbeddedRecord, ResolvedMetadata

logger = logging.getLogger(__name__)

CUSTOM = "custom"
AGENT = "agent"
EMBEDDED = "embedded"

CustomInput = Union[Mapping[str, CustomField], Iterable[CustomField], None]


@dataclass(frozen=True, slots=True)
class Tier:
    """One entry of the cascade: which layer to read and how to label it."""

    name: str
    label: str

    def lookup(self, record: Any, name: str) -> Any:
        if record is None:
            return None
        return record.value(name)


DEFAULT_TIERS: Tuple[Tier, ...] = (
    Tier(AGENT, "from {source}"),
    Tier(EMBEDDED, "from file tags"),
)


def resolve(
    agent: Optional[AgentRecord] = None,
    embedded: Optional[EmbeddedRecord] = None,
    custom: CustomInput = None,
    *,
    tiers: Tuple[Tier, ...] = DEFAULT_TIERS,
) -> ResolvedMetadata:
    return resolve_layers({AGENT: agent, EMBEDDED: embedded}, custom, tiers=tiers)


def resolve_layers(
    layers: Mapping[str, Any],
    custom: CustomInput = None,
    *,
    tiers: Tuple[Tier, ...] = DEFAULT_TIERS,
) -> ResolvedMetadata:
    """Merge named layers into one ResolvedMetadata.

    ``layers`` maps tier names to records exposing ``value(field)``; tiers
    missing from the mapping are treated as absent.
    """
    locked = _locked_entries(custom)
    resolved = ResolvedMetadata()
    agent = layers.get(AGENT)
    if agent is not None:
        for name in BOOKKEEPING_FIELDS:
            setattr(resolved, name, getattr(agent, name))

    for spec in FIELD_SPECS:
        entry = locked.get(spec.name)
        if entry is not None:
            value: Any = entry.value
            if spec.numeric:
                value = parse_number(spec, value)
            setattr(resolved, spec.name, value)
            resolved.sources[spec.name] = CUSTOM
            continue
        tier_name, value = _cascade(spec.name, layers, tiers)
        if tier_name is None:
            continue
        setattr(resolved, spec.name, value)
        resolved.sources[spec.name] = tier_name
    return resolved


def effective_value(
    name: str,
    agent: Optional[AgentRecord] = None,
    embedded: Optional[EmbeddedRecord] = None,
    *,
    tiers: Tuple[Tier, ...] = DEFAULT_TIERS,
) -> str:
    """Current unlocked value of one field, rendered as custom-store text.

    This is the value a lock snapshots. Empty everywhere yields ``""``.
    """
    spec = field_spec(name)
    _, value = _cascade(spec.name, {AGENT: agent, EMBEDDED: embedded}, tiers)
    if value is None:
        return ""
    if spec.numeric:
        return format_number(value) or ""
    return str(value)


def provenance_label(resolved: ResolvedMetadata, name: str, *, tiers: Tuple[Tier, ...] = DEFAULT_TIERS) -> Optional[str]:
    source = resolved.source_of(name)
    if source is None:
        return None
    if source == CUSTOM:
        return "Custom"
    for tier in tiers:
        if tier.name == source:
            return tier.label.format(source=resolved.source or "provider")
    return source


def _cascade(name: str, layers: Mapping[str, Any], tiers: Tuple[Tier, ...]) -> tuple[Optional[str], Any]:
    for tier in tiers:
        value = tier.lookup(layers.get(tier.name), name)
        if not _is_empty(value):
            return tier.name, value
    return None, None


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _locked_entries(custom: CustomInput) -> dict[str, CustomField]:
    if custom is None:
        return {}
    entries = custom.values() if isinstance(custom, Mapping) else custom
    locked: dict[str, CustomField] = {}
    for entry in entries:
        if not entry.locked:
            continue
        try:
            name = field_spec(entry.field).name
        except ValidationError:
            # Rows written for a field this version no longer knows.
            logger.warning("Ignoring locked value for unknown field %r", entry.field)
            continue
        locked[name] = entry
    return locked
