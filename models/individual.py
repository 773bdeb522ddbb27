"""
Individual data model for the Checkup Scheduler.

This module defines the 'Demand' side of the scheduler:
the people who book checkup slots during a cycle.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict
from datetime import date


class Sex(str, Enum):
    """Sex as recorded on the registration form."""
    MALE = "Male"
    FEMALE = "Female"
    UNSPECIFIED = "Unspecified"


class Individual(BaseModel):
    """
    A registered person who may hold appointments.
    Individuals are retired at cycle close, never deleted.
    """

    # --- Core Identity ---
    id: str = Field(min_length=1, description="Unique identifier")
    name: str = Field(min_length=1, description="Full name")

    # --- Demographics ---
    sex: Sex = Field(default=Sex.UNSPECIFIED)
    birth_date: Optional[date] = Field(default=None)
    phone: Optional[str] = Field(default=None)
    email: Optional[str] = Field(default=None, description="Where notifications are delivered")
    address: Optional[str] = Field(default=None)

    # --- Lifecycle ---
    active: bool = Field(
        default=True,
        description="False once the individual has been retired at cycle close"
    )

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        if v is not None and "@" not in v:
            raise ValueError("Email address must contain '@'")
        return v

    @field_validator('birth_date')
    @classmethod
    def validate_birth_date(cls, v):
        if v is not None and v > date.today():
            raise ValueError("Birth date cannot be in the future")
        return v

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "ind_0001",
            "name": "Li Wei",
            "sex": "Female",
            "birth_date": "1988-04-12",
            "email": "li.wei@example.com",
            "active": True
        }
    })
