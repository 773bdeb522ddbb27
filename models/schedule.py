"""
Schedule data models for the Checkup Scheduler.

This module defines the 'Output' of the scheduling engine:
appointments binding an individual to a slot, and the notification
events emitted when an appointment ends.
"""

from typing import Dict, FrozenSet, Optional
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime


class AppointmentState(str, Enum):
    """Lifecycle state of an appointment."""
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @property
    def is_live(self) -> bool:
        return self in LIVE_STATES

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]


LIVE_STATES: FrozenSet[AppointmentState] = frozenset({
    AppointmentState.PENDING,
    AppointmentState.CONFIRMED,
})

# Every legal move of the state machine; anything absent is rejected.
ALLOWED_TRANSITIONS: Dict[AppointmentState, FrozenSet[AppointmentState]] = {
    AppointmentState.PENDING: frozenset({AppointmentState.CONFIRMED, AppointmentState.CANCELLED}),
    AppointmentState.CONFIRMED: frozenset({AppointmentState.COMPLETED, AppointmentState.CANCELLED}),
    AppointmentState.COMPLETED: frozenset(),
    AppointmentState.CANCELLED: frozenset(),
}


class ExaminationMethod(str, Enum):
    """How the individual attends the checkup."""
    ON_SITE = "On_Site"
    MOBILE_UNIT = "Mobile_Unit"
    HOME_VISIT = "Home_Visit"


class Appointment(BaseModel):
    """
    Binding between an individual and a slot.
    Only the SchedulingEngine changes `state`.
    """

    # --- Core Identity ---
    id: str = Field(description="Unique identifier")
    individual_id: str
    slot_id: str
    cycle: str = Field(description="Cycle of the booked slot")

    examination_method: ExaminationMethod = Field(default=ExaminationMethod.ON_SITE)
    state: AppointmentState = Field(default=AppointmentState.PENDING)

    # --- Timestamps ---
    created_at: datetime
    updated_at: datetime

    # --- Outcome ---
    result_ref: Optional[str] = Field(default=None, description="Reference to recorded results")
    cancel_reason: Optional[str] = Field(default=None)

    def can_transition_to(self, target: AppointmentState) -> bool:
        return target in ALLOWED_TRANSITIONS[self.state]

    @property
    def is_live(self) -> bool:
        return self.state.is_live

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "apt_7c1f",
            "individual_id": "ind_0001",
            "slot_id": "slot_2025_03_01_am",
            "cycle": "2025",
            "examination_method": "On_Site",
            "state": "Confirmed",
            "created_at": "2025-02-10T09:14:03",
            "updated_at": "2025-02-10T09:14:03"
        }
    })


class NotificationKind(str, Enum):
    """Why a notification is sent."""
    CANCELLED = "Cancelled"
    RESULT_READY = "ResultReady"
    FORCED_CANCELLED = "ForcedCancelled"


class NotificationEvent(BaseModel):
    """Immutable record handed to the mail collaborator."""

    model_config = ConfigDict(frozen=True)

    appointment_id: str
    individual_id: str
    kind: NotificationKind
    created_at: datetime

    @property
    def key(self):
        return (self.appointment_id, self.kind)
