"""
Appointment Ledger.

This module acts as the 'Memory' of the system.
It tracks:
1. Every appointment ever created, with indices by slot and by individual.
2. Rejected booking attempts, aggregated by cause.
3. Reporting views for desks and administrators.
"""

import threading
from typing import List, Dict, Any, Optional
from collections import defaultdict
from dataclasses import dataclass, field

from models import Appointment, AppointmentState


@dataclass
class RejectionRecord:
    """Record of refused booking attempts for an individual."""
    individual_id: str
    attempts: int = 0
    causes: List[str] = field(default_factory=list)


class AppointmentLedger:
    """
    Stores appointments and answers history queries.
    Only the SchedulingEngine writes to it.
    """

    def __init__(self):
        """Initialize empty ledger."""
        self._lock = threading.RLock()

        # The master record
        self.appointments: Dict[str, Appointment] = {}

        # Indices for direct lookups
        self.slot_index: Dict[str, List[str]] = defaultdict(list)
        self.individual_index: Dict[str, List[str]] = defaultdict(list)

        # Failure tracking
        self.rejections: Dict[str, RejectionRecord] = {}

    def add(self, appointment: Appointment) -> None:
        """Commit a new appointment and update all indices."""
        with self._lock:
            if appointment.id in self.appointments:
                raise ValueError(f"Appointment '{appointment.id}' already recorded")
            self.appointments[appointment.id] = appointment
            self.slot_index[appointment.slot_id].append(appointment.id)
            self.individual_index[appointment.individual_id].append(appointment.id)

    def replace(self, appointment: Appointment) -> None:
        """Store a new version of an existing appointment."""
        with self._lock:
            if appointment.id not in self.appointments:
                raise KeyError(appointment.id)
            self.appointments[appointment.id] = appointment

    def record_rejection(self, individual_id: str, cause: str) -> None:
        """
        Log a refused booking.
        Repeated refusals for one individual are aggregated.
        """
        with self._lock:
            record = self.rejections.get(individual_id)
            if record is None:
                record = self.rejections[individual_id] = RejectionRecord(individual_id=individual_id)
            record.attempts += 1
            record.causes.append(cause)

    # --- Query Methods ---

    def get(self, appointment_id: str) -> Optional[Appointment]:
        return self.appointments.get(appointment_id)

    def for_slot(self, slot_id: str) -> List[Appointment]:
        with self._lock:
            return [self.appointments[a] for a in self.slot_index.get(slot_id, [])]

    def history_for(self, individual_id: str) -> List[Appointment]:
        """All appointments of an individual, newest first."""
        with self._lock:
            history = [self.appointments[a] for a in self.individual_index.get(individual_id, [])]
        history.sort(key=lambda a: a.created_at, reverse=True)
        return history

    def by_state(self, state: AppointmentState) -> List[Appointment]:
        with self._lock:
            found = [a for a in self.appointments.values() if a.state == state]
        found.sort(key=lambda a: a.created_at, reverse=True)
        return found

    def for_cycle(self, cycle: str) -> List[Appointment]:
        with self._lock:
            return [a for a in self.appointments.values() if a.cycle == cycle]

    def page(self, page: int = 1, size: int = 20) -> List[Appointment]:
        """Newest-first page of all appointments (1-based)."""
        if page < 1 or size < 1:
            raise ValueError("Page and size must be positive")
        with self._lock:
            ordered = sorted(self.appointments.values(), key=lambda a: a.created_at, reverse=True)
        start = (page - 1) * size
        return ordered[start:start + size]

    # --- Reporting Methods ---

    def get_statistics(self) -> Dict[str, Any]:
        """Counts by state, per-slot usage and the rejection breakdown."""
        with self._lock:
            appointments = list(self.appointments.values())
            rejections = list(self.rejections.values())

        state_counts = {state.value: 0 for state in AppointmentState}
        slot_usage = defaultdict(int)
        for appointment in appointments:
            state_counts[appointment.state.value] += 1
            # Completed appointments still count against the slot
            if appointment.state != AppointmentState.CANCELLED:
                slot_usage[appointment.slot_id] += 1

        cause_counts = defaultdict(int)
        for record in rejections:
            for cause in record.causes:
                cause_counts[cause] += 1

        total = len(appointments)
        cancelled = state_counts[AppointmentState.CANCELLED.value]
        cancellation_rate = (cancelled / total * 100) if total else 0.0

        return {
            "total_appointments": total,
            "by_state": state_counts,
            "cancellation_rate": round(cancellation_rate, 1),
            "slot_usage": dict(slot_usage),
            "rejected_attempts": sum(r.attempts for r in rejections),
            "rejection_breakdown": dict(cause_counts),
        }

    def clear(self) -> None:
        """Reset state (useful for testing or re-running a cycle)."""
        with self._lock:
            self.appointments.clear()
            self.slot_index.clear()
            self.individual_index.clear()
            self.rejections.clear()
