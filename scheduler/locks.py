"""
Scoped locking for concurrent registration desks.

Locks are keyed by ("individual", id) and ("slot", id). A caller asks for
every key it needs at once; keys are always taken in the same global order
so two operations can never wait on each other in a cycle.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Tuple

from .errors import LockTimeout

logger = logging.getLogger(__name__)

LockKey = Tuple[str, str]

# Individuals sort before slots
_KIND_ORDER = {"individual": 0, "slot": 1}


def individual_key(individual_id: str) -> LockKey:
    return ("individual", individual_id)


def slot_key(slot_id: str) -> LockKey:
    return ("slot", slot_id)


class LockRegistry:
    """
    Hands out one re-entrant lock per key.
    Acquisition is bounded by `timeout` seconds for the whole key set.
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._locks: Dict[LockKey, threading.RLock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: LockKey) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    @staticmethod
    def ordered(keys: Iterable[LockKey]) -> List[LockKey]:
        return sorted(set(keys), key=lambda k: (_KIND_ORDER.get(k[0], 99), k[0], k[1]))

    @contextmanager
    def hold(self, *keys: LockKey) -> Iterator[None]:
        """Take every lock in canonical order; release in reverse."""
        ordered = self.ordered(keys)
        deadline = time.monotonic() + self.timeout
        acquired: List[threading.RLock] = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                remaining = max(0.0, deadline - time.monotonic())
                if not lock.acquire(timeout=remaining):
                    logger.warning(f"Lock wait expired on {key} after {self.timeout}s")
                    raise LockTimeout(ordered, self.timeout)
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
