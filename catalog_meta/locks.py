from __future__ import annotations

import logging
from typing import Optional, Tuple

from .models import CustomField
from .resolver import DEFAULT_TIERS, Tier, effective_value
from .store import CatalogStore

logger = logging.getLogger(__name__)


class LockAccessor:
    """Per-field lock state of an item, backed by the custom tier store.

    Callers are expected to hold a store transaction; the accessor itself
    never commits.
    """

    def __init__(self, store: CatalogStore, *, tiers: Tuple[Tier, ...] = DEFAULT_TIERS) -> None:
        self.store = store
        self.tiers = tiers

    def get(self, item_id: str, field: str) -> Optional[CustomField]:
        return self.store.get_custom_fields(item_id).get(field)

    def is_locked(self, item_id: str, field: str) -> bool:
        entry = self.get(item_id, field)
        return bool(entry and entry.locked)

    def snapshot(self, item_id: str, field: str) -> str:
        """The value ``field`` would resolve to if it were unlocked right now."""
        layers = self.store.load_layers(item_id)
        return effective_value(field, layers.agent, layers.embedded, tiers=self.tiers)

    def lock(self, item_id: str, field: str, value: str, *, updated_by: Optional[str] = None) -> None:
        self.store.put_locked_field(item_id, field, value, updated_by)
        logger.debug("Locked %s.%s to %r", item_id, field, value)

    def lock_current(self, item_id: str, field: str, *, updated_by: Optional[str] = None) -> bool:
        """Freeze the field at its current effective value.

        Returns False when the field was already locked; its value is kept.
        """
        if self.is_locked(item_id, field):
            return False
        self.lock(item_id, field, self.snapshot(item_id, field), updated_by=updated_by)
        return True

    def unlock(self, item_id: str, field: str) -> bool:
        removed = self.store.delete_custom_field(item_id, field)
        if removed:
            logger.debug("Unlocked %s.%s", item_id, field)
        return removed

    def unlock_all(self, item_id: str) -> int:
        return self.store.delete_custom_fields(item_id)
