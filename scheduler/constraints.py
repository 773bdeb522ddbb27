"""
Booking Eligibility Validation Logic.

This module answers the binary question: "May Individual X book Slot Y?"
It covers the checks a registration desk performs before capacity is
touched: the person is still active, the group is still offered, the slot
has not started, and the chosen examination method is available.
"""

from datetime import datetime
from typing import Iterable, Optional
from dataclasses import dataclass

from models import CheckupGroup, ExaminationMethod, Individual, Slot


def _as_slot_time(now: datetime, slot: Slot) -> datetime:
    """
    Express `now` the way the slot's timestamps are written.
    Naive values are taken as local wall-clock time.
    """
    tz = slot.starts_at.tzinfo
    if tz is not None:
        return now.astimezone(tz)
    if now.tzinfo is not None:
        return now.astimezone().replace(tzinfo=None)
    return now


@dataclass
class ConstraintViolation:
    """Detailed reason for rejection."""
    constraint_type: str  # e.g., "Individual", "Group", "Timing", "Method"
    reason: str
    individual_id: str
    slot_id: str


class ConstraintChecker:
    """
    Validates hard eligibility rules for a booking request.
    """

    def __init__(self, allowed_methods: Optional[Iterable[ExaminationMethod]] = None):
        self.allowed_methods = frozenset(allowed_methods or ExaminationMethod)

    def check_booking(
        self,
        individual: Individual,
        group: CheckupGroup,
        slot: Slot,
        method: ExaminationMethod,
        now: datetime
    ) -> Optional[ConstraintViolation]:
        """
        Master validation function. Returns None if Valid, Violation object if Invalid.
        """
        violation = self._check_individual(individual, slot)
        if violation: return violation

        violation = self._check_group(individual, group, slot)
        if violation: return violation

        violation = self._check_timing(individual, slot, now)
        if violation: return violation

        return self._check_method(individual, slot, method)

    def _check_individual(self, individual: Individual, slot: Slot) -> Optional[ConstraintViolation]:
        if not individual.active:
            return ConstraintViolation(
                "Individual", f"{individual.name} has been retired", individual.id, slot.id
            )
        return None

    def _check_group(self, individual: Individual, group: CheckupGroup, slot: Slot) -> Optional[ConstraintViolation]:
        if not group.active:
            return ConstraintViolation(
                "Group", f"Checkup group {group.code} is no longer offered", individual.id, slot.id
            )
        return None

    def _check_timing(self, individual: Individual, slot: Slot, now: datetime) -> Optional[ConstraintViolation]:
        """A slot can be booked only before it starts."""
        if slot.starts_at <= _as_slot_time(now, slot):
            return ConstraintViolation(
                "Timing", f"Slot started at {slot.starts_at.isoformat()}", individual.id, slot.id
            )
        return None

    def _check_method(self, individual: Individual, slot: Slot, method: ExaminationMethod) -> Optional[ConstraintViolation]:
        if method not in self.allowed_methods:
            return ConstraintViolation(
                "Method", f"Examination method {method.value} is not offered", individual.id, slot.id
            )
        return None
