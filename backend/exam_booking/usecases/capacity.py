"""Capacity control for exam slots.

`CapacityController` is the only code allowed to change `Slot.used_capacity`.
Every method must run inside the caller's transaction: the row lock taken by
`acquire_slot`/`lock_slot` is held until that transaction commits or rolls back,
which serializes read-check-increment on one slot across all server instances.
"""

import logging

from ..domain.errors import CapacityInvariantError, NoCapacityError, SlotNotFoundError
from ..domain.repositories import SlotRepository
from ..domain.services import CapacitySnapshot, SlotKey, used_after_occupy, used_after_release
from ..models import Slot

logger = logging.getLogger(__name__)


class CapacityController:
    def __init__(self, slot_repo: SlotRepository) -> None:
        self.slot_repo = slot_repo

    async def acquire_slot(self, key: SlotKey) -> Slot:
        """Lock the slot matching `key` and return it if it still has room."""
        slot = await self.slot_repo.get_for_update_by_key(key)
        if slot is None:
            raise SlotNotFoundError("slot not found")
        if not slot.has_capacity:
            raise NoCapacityError("no capacity left for this slot")
        return slot

    async def lock_slot(self, slot_id: int) -> Slot:
        """Lock a slot by id regardless of how full it is."""
        slot = await self.slot_repo.get_for_update(slot_id)
        if slot is None:
            raise SlotNotFoundError("slot not found")
        return slot

    async def occupy(self, slot: Slot) -> Slot:
        try:
            slot.used_capacity = used_after_occupy(_snapshot(slot))
        except CapacityInvariantError:
            logger.error(
                "capacity anomaly on occupy: slot_id=%s used=%s total=%s",
                slot.id,
                slot.used_capacity,
                slot.total_capacity,
            )
            raise
        return await self.slot_repo.save(slot)

    async def release(self, slot: Slot) -> Slot:
        try:
            slot.used_capacity = used_after_release(_snapshot(slot))
        except CapacityInvariantError:
            logger.error(
                "capacity anomaly on release: slot_id=%s used=%s total=%s",
                slot.id,
                slot.used_capacity,
                slot.total_capacity,
            )
            raise
        return await self.slot_repo.save(slot)


def _snapshot(slot: Slot) -> CapacitySnapshot:
    return CapacitySnapshot(total=slot.total_capacity, used=slot.used_capacity)
