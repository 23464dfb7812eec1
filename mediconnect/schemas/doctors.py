"""Doctor schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer


class VerificationStatus(str, Enum):
    """Doctor verification status."""

    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class DoctorBase(BaseModel):
    """Base schema for doctor profile fields."""

    specialization: str = Field(..., min_length=1, max_length=200)
    experience_years: int = Field(..., ge=0, le=80)
    consultation_fee: Decimal = Field(..., ge=0, decimal_places=2)
    emergency_fee: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    bio: str = ""
    state: str = Field(default="", max_length=100)
    location: str = ""
    medical_license_url: str = ""
    profile_image_url: str | None = None


class DoctorCreate(DoctorBase):
    """Schema for registering the caller's doctor profile."""


class DoctorUpdate(BaseModel):
    """Schema for a doctor updating their own profile."""

    specialization: str | None = Field(None, min_length=1, max_length=200)
    experience_years: int | None = Field(None, ge=0, le=80)
    consultation_fee: Decimal | None = Field(None, ge=0, decimal_places=2)
    emergency_fee: Decimal | None = Field(None, ge=0, decimal_places=2)
    bio: str | None = None
    state: str | None = Field(None, max_length=100)
    location: str | None = None
    medical_license_url: str | None = None
    profile_image_url: str | None = None


class RejectionRecord(BaseModel):
    """One past rejection of a doctor application."""

    reason: str
    rejected_at: datetime


class DoctorResponse(DoctorBase):
    """Doctor response schema."""

    id: UUID
    user_id: UUID
    is_verified: bool
    verification_status: VerificationStatus
    rejection_reason: str | None = None
    rejection_history: list[RejectionRecord] = Field(default_factory=list)
    verified_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    # Joined from users when available
    full_name: str | None = None
    email: str | None = None
    avatar_url: str | None = None

    model_config = {"from_attributes": True}

    @field_serializer("consultation_fee", "emergency_fee", when_used="json")
    def serialize_decimal(self, value: Decimal | None) -> float | None:
        """Serialize Decimal to float for JSON."""
        return float(value) if value is not None else None


class DoctorRejectRequest(BaseModel):
    """Admin rejection of a doctor application."""

    reason: str = Field(
        default="Your application did not meet our verification requirements.",
        min_length=1,
        max_length=1000,
    )


class DoctorListResponse(BaseModel):
    """Paginated doctor list."""

    total: int
    page: int
    page_size: int
    items: list[DoctorResponse]
