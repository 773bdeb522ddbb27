"""
Error taxonomy for the Checkup Scheduler.

Every failure the engine reports is a SchedulingError subclass, so callers
can tell capacity problems, conflicts and unknown ids apart.
The InvariantViolation branch marks broken bookkeeping, not bad input.
"""

from typing import Optional


class SchedulingError(Exception):
    """Base class for all scheduling failures."""


class NotFound(SchedulingError):
    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} '{identifier}' not found")
        self.kind = kind
        self.identifier = identifier


class CapacityExceeded(SchedulingError):
    def __init__(self, slot_id: str, capacity: int, booked: int, requested: int = 1):
        super().__init__(
            f"Slot '{slot_id}' is full ({booked}/{capacity} booked, {requested} requested)"
        )
        self.slot_id = slot_id
        self.capacity = capacity
        self.booked = booked
        self.requested = requested


class ConflictError(SchedulingError):
    """The individual already holds a live appointment."""

    def __init__(self, individual_id: str, existing_appointment_id: Optional[str] = None,
                 cycle: Optional[str] = None):
        detail = f" ({existing_appointment_id})" if existing_appointment_id else ""
        super().__init__(
            f"Individual '{individual_id}' already has a live appointment{detail}"
            + (f" in cycle '{cycle}'" if cycle else "")
        )
        self.individual_id = individual_id
        self.existing_appointment_id = existing_appointment_id
        self.cycle = cycle


class DuplicateBooking(ConflictError):
    pass


class AlreadyTerminal(SchedulingError):
    def __init__(self, appointment_id: str, state):
        super().__init__(f"Appointment '{appointment_id}' is already {state.value}")
        self.appointment_id = appointment_id
        self.state = state


class InvalidTransition(SchedulingError):
    def __init__(self, appointment_id: str, current, target):
        super().__init__(
            f"Appointment '{appointment_id}' cannot move from {current.value} to {target.value}"
        )
        self.appointment_id = appointment_id
        self.current = current
        self.target = target


class BookingRejected(SchedulingError):
    """An eligibility rule refused the booking."""

    def __init__(self, violation):
        super().__init__(f"{violation.constraint_type}: {violation.reason}")
        self.violation = violation


class LockTimeout(SchedulingError):
    """Locks could not be taken in time. Safe to retry."""

    def __init__(self, keys, timeout: float):
        super().__init__(f"Timed out after {timeout}s waiting for {', '.join(map(str, keys))}")
        self.keys = tuple(keys)
        self.timeout = timeout


# --- Fatal branch ---

class InvariantViolation(SchedulingError):
    """Internal bookkeeping is inconsistent. Not user-recoverable."""


class InvalidRelease(InvariantViolation):
    def __init__(self, slot_id: str, booked: int, count: int):
        super().__init__(
            f"Releasing {count} from slot '{slot_id}' would drive booked count below zero (booked={booked})"
        )
        self.slot_id = slot_id
        self.booked = booked
        self.count = count


class RollbackFailed(InvariantViolation):
    def __init__(self, slot_id: str, appointment_id: str):
        super().__init__(
            f"Could not roll back reservation on slot '{slot_id}' for appointment '{appointment_id}'"
        )
        self.slot_id = slot_id
        self.appointment_id = appointment_id
