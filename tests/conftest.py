"""
Shared fixtures: a deterministic clock and a small clinic.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

import pytest

from models import CheckupGroup, Individual, Slot
from scheduler.config import DispatcherConfig, SchedulerConfig
from scheduler.engine import SchedulingEngine
from scheduler.notifications import NotificationDispatcher

START = datetime(2025, 1, 6, 9, 0, 0)
SLOT_DAY = datetime(2025, 3, 1, 8, 0, 0)


class TickingClock:
    """Advances one second on every read, so created_at values are strictly ordered."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            self.now += timedelta(seconds=1)
            return self.now


def make_slot(slot_id: str, capacity: int, cycle: str = "2025", hour_offset: int = 0) -> Slot:
    starts_at = SLOT_DAY + timedelta(hours=hour_offset)
    return Slot(
        id=slot_id,
        group_id="grp_basic",
        cycle=cycle,
        starts_at=starts_at,
        ends_at=starts_at + timedelta(hours=1),
        capacity=capacity,
    )


def make_group(group_id: str = "grp_basic", code: str = "BASIC", active: bool = True) -> CheckupGroup:
    return CheckupGroup(
        id=group_id, code=code, name="Basic Checkup", item_codes=["HEIGHT", "WEIGHT", "BP"], active=active
    )


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(
        DispatcherConfig(max_attempts=3, base_delay_seconds=0.0, max_delay_seconds=0.0)
    )


@pytest.fixture
def engine(clock: TickingClock, dispatcher: NotificationDispatcher) -> SchedulingEngine:
    engine = SchedulingEngine(
        dispatcher=dispatcher,
        config=SchedulerConfig(lock_timeout_seconds=2.0),
        clock=clock,
    )
    engine.add_group(make_group())
    engine.add_slot(make_slot("slot_x", capacity=2))
    engine.add_slot(make_slot("slot_y", capacity=2, hour_offset=2))
    engine.add_slot(make_slot("slot_single", capacity=1, hour_offset=4))
    for i in range(1, 21):
        engine.register_individual(Individual(id=f"ind_{i:03d}", name=f"Person {i}"))
    return engine
