"""User schemas for request/response validation."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class UserRole(str, Enum):
    """User role enumeration."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


class UserUpdate(BaseModel):
    """Schema for updating the caller's own profile."""

    full_name: str | None = Field(None, min_length=1, max_length=200)
    phone: str | None = Field(None, max_length=20)
    avatar_url: str | None = None
    locale: str | None = Field(None, min_length=2, max_length=10)
    email_notifications: bool | None = None
    password: str | None = Field(None, min_length=6, max_length=72)


class UserResponse(BaseModel):
    """User schema for API responses."""

    id: UUID
    email: EmailStr
    full_name: str
    phone: str = ""
    avatar_url: str = ""
    locale: str = "en"
    role: UserRole
    is_active: bool = True
    email_notifications: bool = True
    created_at: datetime
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}
