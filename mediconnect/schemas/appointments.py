"""Appointment schemas for request/response validation."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer, field_validator

from mediconnect.schemas.availability import validate_hhmm


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment sub-state of an appointment."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class AppointmentType(str, Enum):
    """Booking type."""

    SCHEDULED = "scheduled"
    EMERGENCY = "emergency"


class VideoState(str, Enum):
    """Whether the video call is currently open to the patient."""

    DISABLED = "disabled"
    ENABLED = "enabled"


class AppointmentCreate(BaseModel):
    """Schema for a patient booking request."""

    doctor_id: UUID
    appointment_date: date
    appointment_time: str
    appointment_type: AppointmentType = AppointmentType.SCHEDULED
    amount: Decimal | None = Field(None, ge=0, decimal_places=2)
    notes: str = Field(default="", max_length=1000)

    @field_validator("appointment_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Validate HH:MM format."""
        return validate_hhmm(v)


class AppointmentStatusUpdate(BaseModel):
    """Schema for confirming or cancelling an appointment."""

    status: Literal[AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED]
    notes: str | None = Field(None, max_length=1000)


class PermissionsUpdate(BaseModel):
    """Doctor-controlled chat/video toggles. Omitted fields are left unchanged."""

    chat_unlocked: bool | None = None
    video_unlocked: bool | None = None
    join_url: str | None = Field(None, max_length=500)
    meeting_provider: Literal["zoom", "meet"] | None = None
    meeting_time: datetime | None = None
    auto_send: bool = False


class VideoMeetingInfo(BaseModel):
    """Video meeting state for an appointment."""

    state: VideoState
    provider: str | None = None
    meeting_id: str | None = None
    join_url: str | None = None
    host_url: str | None = None
    meeting_time: datetime | None = None
    enabled_at: datetime | None = None
    disabled_at: datetime | None = None
    doctor_in_call: bool = False

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "VideoMeetingInfo":
        """
        Build from the flat meeting columns of an appointment row.

        Links are only exposed while the call is enabled.
        """
        enabled = bool(row["video_unlocked"])
        return cls(
            state=VideoState.ENABLED if enabled else VideoState.DISABLED,
            provider=row.get("meeting_provider"),
            meeting_id=row.get("meeting_id"),
            join_url=row.get("meeting_join_url") if enabled else None,
            host_url=row.get("meeting_host_url") if enabled else None,
            meeting_time=row.get("meeting_time"),
            enabled_at=row.get("video_enabled_at"),
            disabled_at=row.get("video_disabled_at"),
            doctor_in_call=bool(row.get("doctor_in_call")),
        )


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    doctor_id: UUID
    patient_id: UUID
    appointment_date: date
    appointment_time: str
    appointment_type: AppointmentType
    status: AppointmentStatus
    payment_status: PaymentStatus
    amount: Decimal
    notes: str = ""
    chat_unlocked: bool
    video_unlocked: bool
    video: VideoMeetingInfo
    created_at: datetime
    updated_at: datetime
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "AppointmentResponse":
        """Build from an appointments row mapping."""
        return cls.model_validate({**row, "video": VideoMeetingInfo.from_row(row)})

    @field_serializer("amount", when_used="json")
    def serialize_decimal(self, value: Decimal) -> float:
        """Serialize Decimal to float for JSON."""
        return float(value)


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    appointment_date: date | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class MarkDoneResponse(BaseModel):
    """Result of completing a consultation."""

    appointment: AppointmentResponse
    prescription_id: UUID | None = None
    email_queued: bool
