"""Availability window schemas."""

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_hhmm(value: str) -> str:
    """Check a 24-hour ``HH:MM`` string."""
    if not HHMM_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    return value


class AvailabilityWindow(BaseModel):
    """Open hours for one weekday. ``end_time`` itself is not bookable."""

    start_time: str
    end_time: str
    is_available: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Validate HH:MM format."""
        return validate_hhmm(v)

    @model_validator(mode="after")
    def validate_order(self) -> "AvailabilityWindow":
        """Validate the window is non-empty."""
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class AvailabilityResponse(AvailabilityWindow):
    """Stored availability window."""

    id: UUID
    doctor_id: UUID
    day_of_week: int = Field(..., ge=0, le=6)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
