"""Authentication schemas."""

from enum import Enum

from pydantic import BaseModel, EmailStr, Field

from mediconnect.schemas.users import UserResponse


class RegistrationRole(str, Enum):
    """Roles a user may choose at self-registration."""

    PATIENT = "patient"
    DOCTOR = "doctor"


class RegisterRequest(BaseModel):
    """Account registration request."""

    full_name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    role: RegistrationRole = RegistrationRole.PATIENT
    phone: str | None = Field(None, max_length=20)


class LoginRequest(BaseModel):
    """Email and password login request."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class LoginResponse(BaseModel):
    """Session credential plus the authenticated user."""

    access_token: str
    token_type: str = "bearer"
    user: UserResponse
