"""
Resource data models for the Checkup Scheduler.

This module defines the 'Supply' side of the scheduler:
1. Check items (single measurements such as blood pressure)
2. Checkup groups (ordered bundles of items offered together)
3. Slots (bookable time windows with finite capacity)
"""

from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from datetime import datetime


class CheckItem(BaseModel):
    """A single measurable item of a checkup."""
    code: str = Field(min_length=1, description="Unique item code, e.g. 'BP'")
    name: str = Field(min_length=1)
    reference_value: Optional[str] = Field(default=None, description="Normal range as shown on reports")
    unit: Optional[str] = Field(default=None)
    active: bool = Field(default=True)


class CheckupGroup(BaseModel):
    """
    A named bundle of check items offered together at scheduled slots.
    """
    id: str = Field(description="Unique identifier")
    code: str = Field(min_length=1, description="Unique group code")
    name: str = Field(min_length=1)
    description: str = Field(default="")

    # Order matters: items are performed in this sequence
    item_codes: List[str] = Field(
        min_length=1,
        description="Ordered sequence of required item codes"
    )
    active: bool = Field(default=True, description="Inactive groups accept no new bookings")

    @field_validator('item_codes')
    @classmethod
    def validate_item_codes(cls, v):
        if len(set(v)) != len(v):
            raise ValueError("Item codes must not repeat within a group")
        return v

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "grp_basic",
            "code": "BASIC",
            "name": "Basic Annual Checkup",
            "item_codes": ["HEIGHT", "WEIGHT", "BP", "CBC"],
            "active": True
        }
    })


class Slot(BaseModel):
    """
    Bookable time window for one checkup group.
    The booked count is owned by the SlotCatalog, not stored here.
    """
    id: str = Field(description="Unique identifier")
    group_id: str = Field(description="Owning checkup group")
    cycle: str = Field(default="default", min_length=1, description="Checkup cycle label")

    starts_at: datetime
    ends_at: datetime
    capacity: int = Field(ge=0, description="Maximum number of bookings")

    @model_validator(mode='after')
    def validate_window(self):
        if (self.starts_at.tzinfo is None) != (self.ends_at.tzinfo is None):
            raise ValueError("Slot start and end must both be naive or both carry a timezone")
        if self.starts_at >= self.ends_at:
            raise ValueError("Slot end must be strictly after slot start")
        return self

    @property
    def duration_minutes(self) -> int:
        return int((self.ends_at - self.starts_at).total_seconds() // 60)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "slot_2025_03_01_am",
            "group_id": "grp_basic",
            "cycle": "2025",
            "starts_at": "2025-03-01T08:00:00",
            "ends_at": "2025-03-01T10:00:00",
            "capacity": 20
        }
    })
