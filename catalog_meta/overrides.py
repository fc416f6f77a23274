from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import ValidationError
from .fields import canonical_field, field_spec, format_number, parse_number
from .locks import LockAccessor
from .models import CustomField
from .resolver import DEFAULT_TIERS, Tier
from .store import CatalogStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FieldChange:
    """A validated lock transition for one field.

    ``locked=True`` with ``value=None`` means "freeze at the current value".
    ``locked=False`` never carries a value.
    """

    field: str
    locked: bool
    value: Optional[str] = None


def validate_change(field: str, locked: Any, value: Any = None) -> FieldChange:
    name = canonical_field(field)
    if not isinstance(locked, bool):
        raise ValidationError(name, f"locked must be true or false, got {locked!r}")
    if not locked:
        if value is not None and value != "":
            raise ValidationError(name, "has a value but is not locked; custom values are always locked")
        return FieldChange(name, False)
    if value is None:
        return FieldChange(name, True)
    spec = field_spec(name)
    if spec.numeric:
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise ValidationError(name, f"expected a {spec.kind} value, got {value!r}")
        text = value if isinstance(value, str) else format_number(value)
        parse_number(spec, text)
        return FieldChange(name, True, (text or "").strip())
    if not isinstance(value, str):
        raise ValidationError(name, f"expected a text value, got {type(value).__name__}")
    return FieldChange(name, True, value)


def validate_batch(changes: Mapping[str, Any]) -> List[FieldChange]:
    if not isinstance(changes, Mapping):
        raise ValidationError("*", "batch must map field names to {value, locked} entries")
    validated: Dict[str, FieldChange] = {}
    for field, entry in changes.items():
        if isinstance(entry, FieldChange):
            change = validate_change(entry.field, entry.locked, entry.value)
        elif isinstance(entry, Mapping):
            unknown = set(entry) - {"value", "locked"}
            if unknown:
                raise ValidationError(str(field), f"unexpected keys: {', '.join(sorted(unknown))}")
            change = validate_change(field, entry.get("locked", False), entry.get("value"))
        else:
            raise ValidationError(str(field), "entry must be an object with value/locked")
        if change.field in validated:
            raise ValidationError(change.field, "appears more than once in the batch")
        validated[change.field] = change
    return list(validated.values())


class OverrideService:
    """Applies edits and lock toggles to the custom tier.

    Every request is validated in full before a transaction is opened, and
    all writes for a request share one transaction.
    """

    def __init__(self, store: CatalogStore, *, tiers: Tuple[Tier, ...] = DEFAULT_TIERS) -> None:
        self.store = store
        self.locks = LockAccessor(store, tiers=tiers)

    def set_lock(
        self,
        item_id: str,
        field: str,
        locked: bool,
        value: Any = None,
        *,
        updated_by: Optional[str] = None,
    ) -> Optional[CustomField]:
        change = validate_change(field, locked, value)
        with self.store.transaction():
            self.store.require_item(item_id)
            self._apply(item_id, change, updated_by)
            self.store.touch_item(item_id)
            return self.locks.get(item_id, change.field)

    def edit(self, item_id: str, field: str, new_value: Any, *, updated_by: Optional[str] = None) -> Optional[CustomField]:
        return self.set_lock(item_id, field, True, new_value, updated_by=updated_by)

    def clear_all(self, item_id: str) -> int:
        with self.store.transaction():
            self.store.require_item(item_id)
            removed = self.locks.unlock_all(item_id)
            self.store.touch_item(item_id)
        logger.info("Cleared %d custom field(s) on %s", removed, item_id)
        return removed

    def batch_apply(
        self,
        item_id: str,
        changes: Mapping[str, Any],
        *,
        updated_by: Optional[str] = None,
    ) -> Dict[str, CustomField]:
        validated = validate_batch(changes)
        with self.store.transaction():
            self.store.require_item(item_id)
            for change in validated:
                self._apply(item_id, change, updated_by)
            self.store.touch_item(item_id)
            custom = self.store.get_custom_fields(item_id)
        logger.info("Applied %d field change(s) to %s", len(validated), item_id)
        return custom

    def _apply(self, item_id: str, change: FieldChange, updated_by: Optional[str]) -> None:
        if not change.locked:
            if self.locks.unlock(item_id, change.field):
                logger.info("Unlocked %s on %s", change.field, item_id)
            return
        if change.value is None:
            if self.locks.lock_current(item_id, change.field, updated_by=updated_by):
                logger.info("Locked %s on %s at its current value", change.field, item_id)
            return
        self.locks.lock(item_id, change.field, change.value, updated_by=updated_by)
        logger.info("Locked %s on %s to a custom value", change.field, item_id)
