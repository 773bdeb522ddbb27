"""
Roster.

Registry of individuals plus the index of their live appointments,
one per (individual, cycle). This is the conflict check used before
any capacity is touched.
"""

import logging
import threading
from typing import Dict, List, Optional, Tuple

from models import Individual
from .errors import DuplicateBooking, NotFound

logger = logging.getLogger(__name__)


class Roster:
    """
    Maps individuals to their live appointment for each cycle.
    """

    def __init__(self):
        self._individuals: Dict[str, Individual] = {}
        # (individual_id, cycle) -> live appointment id
        self._live: Dict[Tuple[str, str], str] = {}
        self._lock = threading.RLock()

    # --- Registration ---

    def register(self, individual: Individual) -> None:
        with self._lock:
            if individual.id in self._individuals:
                raise ValueError(f"Individual '{individual.id}' already registered")
            self._individuals[individual.id] = individual

    def get(self, individual_id: str) -> Individual:
        individual = self._individuals.get(individual_id)
        if individual is None:
            raise NotFound("Individual", individual_id)
        return individual

    def is_registered(self, individual_id: str) -> bool:
        return individual_id in self._individuals

    def individuals(self) -> List[Individual]:
        return list(self._individuals.values())

    def retire(self, individual_id: str) -> Individual:
        """Mark an individual inactive. Records are kept."""
        with self._lock:
            retired = self.get(individual_id).model_copy(update={"active": False})
            self._individuals[individual_id] = retired
        logger.info(f"Retired individual {individual_id}")
        return retired

    # --- Live Appointment Index ---

    def has_live_appointment(self, individual_id: str, cycle: Optional[str] = None) -> bool:
        with self._lock:
            if cycle is not None:
                return (individual_id, cycle) in self._live
            return any(ind == individual_id for ind, _ in self._live)

    def live_appointment(self, individual_id: str, cycle: str) -> Optional[str]:
        with self._lock:
            return self._live.get((individual_id, cycle))

    def attach(self, individual_id: str, cycle: str, appointment_id: str) -> None:
        with self._lock:
            existing = self._live.get((individual_id, cycle))
            if existing is not None:
                raise DuplicateBooking(individual_id, existing, cycle)
            self._live[(individual_id, cycle)] = appointment_id

    def detach(self, individual_id: str, cycle: str, appointment_id: str) -> None:
        # Idempotent; leaves a different live appointment alone
        with self._lock:
            if self._live.get((individual_id, cycle)) == appointment_id:
                del self._live[(individual_id, cycle)]

    def live_count(self) -> int:
        with self._lock:
            return len(self._live)
