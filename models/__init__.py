"""
Data models package for the Checkup Scheduler.

This package exports the three core pillars of the data architecture:
1. Demand (Individual)
2. Supply (CheckItem, CheckupGroup, Slot)
3. Output (Appointment, NotificationEvent)
"""

from .individual import (
    Individual,
    Sex
)

from .resource import (
    CheckItem,
    CheckupGroup,
    Slot
)

from .schedule import (
    Appointment,
    AppointmentState,
    ALLOWED_TRANSITIONS,
    LIVE_STATES,
    ExaminationMethod,
    NotificationEvent,
    NotificationKind
)

__all__ = [
    # --- Demand Models ---
    "Individual",
    "Sex",

    # --- Resource Models ---
    "CheckItem",
    "CheckupGroup",
    "Slot",

    # --- Output Models ---
    "Appointment",
    "AppointmentState",
    "ALLOWED_TRANSITIONS",
    "LIVE_STATES",
    "ExaminationMethod",
    "NotificationEvent",
    "NotificationKind",
]
