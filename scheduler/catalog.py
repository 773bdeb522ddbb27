"""
Slot Catalog.

Holds the bookable checkup slots and the groups they belong to, and is
the only owner of each slot's booked counter. Every counter change goes
through reserve / release under that slot's own lock.
"""

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List

from models import CheckupGroup, Slot
from .errors import CapacityExceeded, InvalidRelease, NotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reservation:
    """Token proving that capacity was taken on a slot."""
    slot_id: str
    count: int
    sequence: int


@dataclass
class _SlotEntry:
    slot: Slot
    booked: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)


class SlotCatalog:
    """
    Registry of groups and slots with per-slot capacity counters.
    """

    def __init__(self):
        self._groups: Dict[str, CheckupGroup] = {}
        self._entries: Dict[str, _SlotEntry] = {}
        self._registry_lock = threading.Lock()
        self._sequence = itertools.count(1)

    # --- Registration ---

    def add_group(self, group: CheckupGroup) -> None:
        with self._registry_lock:
            if group.id in self._groups:
                raise ValueError(f"Checkup group '{group.id}' already registered")
            if any(g.code == group.code for g in self._groups.values()):
                raise ValueError(f"Checkup group code '{group.code}' already in use")
            self._groups[group.id] = group
        logger.info(f"Registered group {group.code} ({len(group.item_codes)} items)")

    def add_slot(self, slot: Slot) -> None:
        with self._registry_lock:
            if slot.group_id not in self._groups:
                raise NotFound("CheckupGroup", slot.group_id)
            if slot.id in self._entries:
                raise ValueError(f"Slot '{slot.id}' already registered")
            self._entries[slot.id] = _SlotEntry(slot=slot)
        logger.debug(f"Registered slot {slot.id} (capacity={slot.capacity})")

    # --- Lookups ---

    def _entry(self, slot_id: str) -> _SlotEntry:
        entry = self._entries.get(slot_id)
        if entry is None:
            raise NotFound("Slot", slot_id)
        return entry

    def get_group(self, group_id: str) -> CheckupGroup:
        group = self._groups.get(group_id)
        if group is None:
            raise NotFound("CheckupGroup", group_id)
        return group

    def get_slot(self, slot_id: str) -> Slot:
        return self._entry(slot_id).slot

    def has_slot(self, slot_id: str) -> bool:
        return slot_id in self._entries

    def slots(self) -> List[Slot]:
        return [e.slot for e in self._entries.values()]

    def slots_for_group(self, group_id: str) -> List[Slot]:
        self.get_group(group_id)
        return sorted(
            (e.slot for e in self._entries.values() if e.slot.group_id == group_id),
            key=lambda s: s.starts_at
        )

    def groups(self) -> List[CheckupGroup]:
        return list(self._groups.values())

    # --- Capacity Counter ---

    def reserve(self, slot_id: str, count: int = 1) -> Reservation:
        """Take `count` places or raise CapacityExceeded without changing anything."""
        if count < 1:
            raise ValueError("Reservation count must be at least 1")
        entry = self._entry(slot_id)
        with entry.lock:
            capacity = entry.slot.capacity
            if entry.booked + count > capacity:
                raise CapacityExceeded(slot_id, capacity, entry.booked, count)
            entry.booked += count
            return Reservation(slot_id=slot_id, count=count, sequence=next(self._sequence))

    def release(self, slot_id: str, count: int = 1) -> None:
        if count < 1:
            raise ValueError("Release count must be at least 1")
        entry = self._entry(slot_id)
        with entry.lock:
            if entry.booked - count < 0:
                logger.critical(
                    f"Release of {count} on slot {slot_id} would go negative (booked={entry.booked})"
                )
                raise InvalidRelease(slot_id, entry.booked, count)
            entry.booked -= count

    def set_capacity(self, slot_id: str, capacity: int) -> Slot:
        """
        Administrative capacity change. May drop below the booked count
        (e.g. a resource outage); rebalancing then brings the slot back in line.
        """
        if capacity < 0:
            raise ValueError("Capacity cannot be negative")
        entry = self._entry(slot_id)
        with entry.lock:
            old = entry.slot.capacity
            entry.slot = entry.slot.model_copy(update={"capacity": capacity})
            if entry.booked > capacity:
                logger.warning(
                    f"Slot {slot_id} capacity {old} -> {capacity} leaves it overbooked by {entry.booked - capacity}"
                )
            else:
                logger.info(f"Slot {slot_id} capacity {old} -> {capacity}")
            return entry.slot

    # --- Pure Reads ---

    def capacity_of(self, slot_id: str) -> int:
        return self._entry(slot_id).slot.capacity

    def booked_count(self, slot_id: str) -> int:
        entry = self._entry(slot_id)
        with entry.lock:
            return entry.booked

    def remaining(self, slot_id: str) -> int:
        entry = self._entry(slot_id)
        with entry.lock:
            return max(0, entry.slot.capacity - entry.booked)

    def overbooked_by(self, slot_id: str) -> int:
        entry = self._entry(slot_id)
        with entry.lock:
            return max(0, entry.booked - entry.slot.capacity)
