"""
The Checkup Scheduling Engine.

This module implements the allocator behind every registration desk.
It combines three guarantees:
1. Capacity Safety - a slot never holds more live bookings than it has places.
2. Conflict Safety - an individual holds at most one live appointment per cycle.
3. Rollback on Partial Failure - capacity is never consumed without a live
   appointment, and no appointment is live without consumed capacity.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from models import (
    Appointment,
    AppointmentState,
    CheckupGroup,
    ExaminationMethod,
    Individual,
    NotificationEvent,
    NotificationKind,
    Slot,
)
from .catalog import Reservation, SlotCatalog
from .config import SchedulerConfig
from .constraints import ConstraintChecker
from .errors import (
    AlreadyTerminal,
    BookingRejected,
    DuplicateBooking,
    InvalidTransition,
    InvariantViolation,
    NotFound,
    RollbackFailed,
    SchedulingError,
)
from .locks import LockRegistry, individual_key, slot_key
from .notifications import NotificationDispatcher
from .roster import Roster
from .state import AppointmentLedger

logger = logging.getLogger(__name__)


class SchedulingEngine:
    """
    Main scheduling engine.
    The only writer of appointment state.
    """

    def __init__(
        self,
        catalog: Optional[SlotCatalog] = None,
        roster: Optional[Roster] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        config: Optional[SchedulerConfig] = None,
        checker: Optional[ConstraintChecker] = None,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None
    ):
        self.config = config or SchedulerConfig()
        self.catalog = catalog or SlotCatalog()
        self.roster = roster or Roster()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.checker = checker or ConstraintChecker()
        self.ledger = AppointmentLedger()
        self.locks = LockRegistry(timeout=self.config.lock_timeout_seconds)

        self._clock = clock or datetime.now
        self._new_id = id_factory or (lambda: f"apt_{uuid.uuid4().hex[:12]}")

    # --- Registration (administrative collaborator) ---

    def register_individual(self, individual: Individual) -> None:
        self.roster.register(individual)

    def retire_individual(self, individual_id: str) -> Individual:
        self.roster.get(individual_id)
        with self.locks.hold(individual_key(individual_id)):
            return self.roster.retire(individual_id)

    def add_group(self, group: CheckupGroup) -> None:
        self.catalog.add_group(group)

    def add_slot(self, slot: Slot) -> None:
        self.catalog.add_slot(slot)

    def set_capacity(self, slot_id: str, capacity: int) -> Slot:
        self.catalog.get_slot(slot_id)
        with self.locks.hold(slot_key(slot_id)):
            return self.catalog.set_capacity(slot_id, capacity)

    # --- Booking ---

    def book(
        self,
        individual_id: str,
        slot_id: str,
        examination_method: Union[ExaminationMethod, str] = ExaminationMethod.ON_SITE,
        auto_confirm: Optional[bool] = None
    ) -> Appointment:
        """
        Reserve a place on `slot_id` for `individual_id`.

        Raises NotFound, BookingRejected, DuplicateBooking or CapacityExceeded
        without leaving any partial state behind.
        """
        if auto_confirm is None:
            auto_confirm = self.config.auto_confirm
        method = ExaminationMethod(examination_method)

        try:
            # Surface unknown ids before waiting on locks
            self.roster.get(individual_id)
            self.catalog.get_slot(slot_id)
            with self.locks.hold(individual_key(individual_id), slot_key(slot_id)):
                appointment = self._book_locked(individual_id, slot_id, method, auto_confirm)
        except InvariantViolation:
            raise
        except SchedulingError as exc:
            if self.roster.is_registered(individual_id):
                self.ledger.record_rejection(individual_id, type(exc).__name__)
            logger.warning(f"Booking {individual_id} -> {slot_id} refused: {exc}")
            raise

        logger.info(
            f"Booked {appointment.id}: {individual_id} -> {slot_id} ({appointment.state.value})"
        )
        return appointment.model_copy()

    def _book_locked(
        self,
        individual_id: str,
        slot_id: str,
        method: ExaminationMethod,
        auto_confirm: bool
    ) -> Appointment:
        # Re-read under lock; the individual or slot may have changed
        individual = self.roster.get(individual_id)
        slot = self.catalog.get_slot(slot_id)
        group = self.catalog.get_group(slot.group_id)
        now = self._clock()

        # 0. Eligibility
        violation = self.checker.check_booking(individual, group, slot, method, now)
        if violation:
            raise BookingRejected(violation)

        # 1. Conflict
        existing = self.roster.live_appointment(individual_id, slot.cycle)
        if existing is not None:
            raise DuplicateBooking(individual_id, existing, slot.cycle)

        # 2. Capacity (CapacityExceeded propagates untouched)
        reservation = self.catalog.reserve(slot_id)

        # 3. Appointment + roster, undone as a unit
        appointment = Appointment(
            id=self._new_id(),
            individual_id=individual_id,
            slot_id=slot_id,
            cycle=slot.cycle,
            examination_method=method,
            state=AppointmentState.PENDING,
            created_at=now,
            updated_at=now,
        )
        try:
            self.roster.attach(individual_id, slot.cycle, appointment.id)
            try:
                if auto_confirm:
                    appointment = self._transition(appointment, AppointmentState.CONFIRMED, now)
                self.ledger.add(appointment)
            except Exception:
                self.roster.detach(individual_id, slot.cycle, appointment.id)
                raise
        except Exception:
            self._rollback(reservation, appointment.id)
            raise

        return appointment

    def _rollback(self, reservation: Reservation, appointment_id: str) -> None:
        try:
            self.catalog.release(reservation.slot_id, reservation.count)
        except Exception as exc:
            logger.critical(
                f"Rollback of reservation #{reservation.sequence} on {reservation.slot_id} failed"
            )
            raise RollbackFailed(reservation.slot_id, appointment_id) from exc
        logger.warning(f"Rolled back reservation #{reservation.sequence} on {reservation.slot_id}")

    # --- Lifecycle Transitions ---

    def confirm(self, appointment_id: str) -> Appointment:
        """Pending -> Confirmed, for desks that review bookings before confirming."""
        appointment = self._require(appointment_id)
        with self._hold_for(appointment):
            appointment = self._require(appointment_id)
            updated = self._transition(appointment, AppointmentState.CONFIRMED, self._clock())
            self.ledger.replace(updated)
        logger.info(f"Confirmed {appointment_id}")
        return updated.model_copy()

    def cancel(self, appointment_id: str, reason: str = "requested") -> Appointment:
        """Cancel a live appointment, free its place and notify the individual."""
        appointment = self._require(appointment_id)
        with self._hold_for(appointment):
            appointment = self._require(appointment_id)
            if appointment.state.is_terminal:
                raise AlreadyTerminal(appointment_id, appointment.state)
            updated = self._cancel_locked(appointment, NotificationKind.CANCELLED, reason, self._clock())
        logger.info(f"Cancelled {appointment_id} ({reason})")
        return updated.model_copy()

    def complete(self, appointment_id: str, result_ref: str) -> Appointment:
        """
        Confirmed -> Completed. The slot place stays consumed: a completed
        visit still counts against the cycle's capacity.
        """
        if not result_ref:
            raise ValueError("result_ref is required to complete an appointment")
        appointment = self._require(appointment_id)
        with self._hold_for(appointment):
            appointment = self._require(appointment_id)
            now = self._clock()
            updated = self._transition(
                appointment, AppointmentState.COMPLETED, now, result_ref=result_ref
            )
            self.roster.detach(appointment.individual_id, appointment.cycle, appointment.id)
            self.ledger.replace(updated)
            self._emit(updated, NotificationKind.RESULT_READY, now)
        logger.info(f"Completed {appointment_id} (result {result_ref})")
        return updated.model_copy()

    def _cancel_locked(
        self,
        appointment: Appointment,
        kind: NotificationKind,
        reason: str,
        now: datetime
    ) -> Appointment:
        updated = self._transition(
            appointment, AppointmentState.CANCELLED, now, cancel_reason=reason
        )
        self.catalog.release(appointment.slot_id)
        self.roster.detach(appointment.individual_id, appointment.cycle, appointment.id)
        self.ledger.replace(updated)
        self._emit(updated, kind, now)
        return updated

    def _transition(
        self,
        appointment: Appointment,
        target: AppointmentState,
        now: datetime,
        **changes: Any
    ) -> Appointment:
        if not appointment.can_transition_to(target):
            raise InvalidTransition(appointment.id, appointment.state, target)
        return appointment.model_copy(update={"state": target, "updated_at": now, **changes})

    # --- Administrative Repair ---

    def rebalance_overbooking(self, slot_id: str) -> List[Appointment]:
        """
        Force-cancel bookings until the slot fits its (reduced) capacity.

        Pending appointments go first, latest `created_at` first, ties broken
        by the highest individual id. Confirmed ones follow in the same order
        only if Pending ones are not enough. Completed visits are never undone.
        """
        self.catalog.get_slot(slot_id)
        while True:
            snapshot = [a for a in self.ledger.for_slot(slot_id) if a.is_live]
            keys = {individual_key(a.individual_id) for a in snapshot}
            keys.add(slot_key(slot_id))
            with self.locks.hold(*keys):
                live = [a for a in self.ledger.for_slot(slot_id) if a.is_live]
                if any(individual_key(a.individual_id) not in keys for a in live):
                    # A booking landed between snapshot and lock; take a fresh set
                    continue

                excess = self.catalog.overbooked_by(slot_id)
                if not excess:
                    return []

                now = self._clock()
                cancelled = [
                    self._cancel_locked(victim, NotificationKind.FORCED_CANCELLED, "capacity_reduced", now)
                    for victim in self._select_victims(live, excess)
                ]
                leftover = self.catalog.overbooked_by(slot_id)

            if leftover:
                logger.warning(
                    f"Slot {slot_id} still overbooked by {leftover}; only completed visits remain"
                )
            logger.info(f"Rebalanced {slot_id}: force-cancelled {len(cancelled)} appointment(s)")
            return [a.model_copy() for a in cancelled]

    @staticmethod
    def _select_victims(live: List[Appointment], excess: int) -> List[Appointment]:
        def newest_first(state: AppointmentState) -> List[Appointment]:
            return sorted(
                (a for a in live if a.state == state),
                key=lambda a: (a.created_at, a.individual_id),
                reverse=True
            )

        ranked = newest_first(AppointmentState.PENDING) + newest_first(AppointmentState.CONFIRMED)
        return ranked[:excess]

    def close_cycle(self, cycle: str, reason: str = "cycle_expired") -> List[Appointment]:
        """Cancel every live appointment left in `cycle` when the cycle ends."""
        while True:
            snapshot = [a for a in self.ledger.for_cycle(cycle) if a.is_live]
            if not snapshot:
                return []
            keys = {individual_key(a.individual_id) for a in snapshot}
            keys.update(slot_key(a.slot_id) for a in snapshot)
            with self.locks.hold(*keys):
                live = [a for a in self.ledger.for_cycle(cycle) if a.is_live]
                if any(
                    individual_key(a.individual_id) not in keys or slot_key(a.slot_id) not in keys
                    for a in live
                ):
                    continue
                now = self._clock()
                expired = [
                    self._cancel_locked(a, NotificationKind.CANCELLED, reason, now) for a in live
                ]
            logger.info(f"Closed cycle {cycle}: expired {len(expired)} live appointment(s)")
            return [a.model_copy() for a in expired]

    # --- Notification Hand-off ---

    def _emit(self, appointment: Appointment, kind: NotificationKind, now: datetime) -> None:
        event = NotificationEvent(
            appointment_id=appointment.id,
            individual_id=appointment.individual_id,
            kind=kind,
            created_at=now,
        )
        try:
            self.dispatcher.enqueue(event)
        except Exception:
            # The transaction has already committed; delivery is best-effort from here
            logger.exception(f"Could not queue {kind.value} notification for {appointment.id}")

    # --- Queries ---

    def _require(self, appointment_id: str) -> Appointment:
        appointment = self.ledger.get(appointment_id)
        if appointment is None:
            raise NotFound("Appointment", appointment_id)
        return appointment

    def _hold_for(self, appointment: Appointment):
        return self.locks.hold(individual_key(appointment.individual_id), slot_key(appointment.slot_id))

    def remaining(self, slot_id: str) -> int:
        self.catalog.get_slot(slot_id)
        with self.locks.hold(slot_key(slot_id)):
            return self.catalog.remaining(slot_id)

    def has_live_appointment(self, individual_id: str, cycle: Optional[str] = None) -> bool:
        self.roster.get(individual_id)
        with self.locks.hold(individual_key(individual_id)):
            return self.roster.has_live_appointment(individual_id, cycle)

    def appointment_state(self, appointment_id: str) -> AppointmentState:
        appointment = self._require(appointment_id)
        with self._hold_for(appointment):
            return self._require(appointment_id).state

    def get_appointment(self, appointment_id: str) -> Appointment:
        return self._require(appointment_id).model_copy()

    def history_for(self, individual_id: str) -> List[Appointment]:
        self.roster.get(individual_id)
        return [a.model_copy() for a in self.ledger.history_for(individual_id)]

    def appointments_by_state(self, state: Union[AppointmentState, str]) -> List[Appointment]:
        return [a.model_copy() for a in self.ledger.by_state(AppointmentState(state))]

    def list_appointments(self, page: int = 1, size: int = 20) -> List[Appointment]:
        return [a.model_copy() for a in self.ledger.page(page, size)]

    def statistics(self) -> Dict[str, Any]:
        """
        Reporting snapshot.

        Each entry under "slots" is read under that slot's lock, so it never
        shows a reservation whose appointment has not committed. The ledger
        totals and counters around it are point-in-time reads taken one after
        another, not one atomic view of the whole engine.
        """
        stats = self.ledger.get_statistics()
        stats["slots"] = {slot.id: self._slot_usage(slot.id) for slot in self.catalog.slots()}
        stats["live_appointments"] = self.roster.live_count()
        stats["queued_notifications"] = len(self.dispatcher)
        return stats

    def _slot_usage(self, slot_id: str) -> Dict[str, int]:
        with self.locks.hold(slot_key(slot_id)):
            return {
                "capacity": self.catalog.capacity_of(slot_id),
                "booked": self.catalog.booked_count(slot_id),
                "remaining": self.catalog.remaining(slot_id),
                "committed": sum(
                    1 for a in self.ledger.for_slot(slot_id) if a.state != AppointmentState.CANCELLED
                ),
            }
