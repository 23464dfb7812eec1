"""Prescription schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class Medication(BaseModel):
    """One prescribed medication."""

    name: str = Field(..., min_length=1, max_length=200)
    dosage: str = ""
    frequency: str = ""
    duration: str = ""


class PrescriptionCreate(BaseModel):
    """Schema for a doctor writing a prescription."""

    appointment_id: UUID
    diagnosis: str = Field(..., min_length=1, max_length=2000)
    medications: list[Medication] = Field(default_factory=list)
    instructions: str = ""
    doctor_notes: str = ""
    pdf_url: str | None = None


class PrescriptionResponse(BaseModel):
    """Stored prescription."""

    id: UUID
    appointment_id: UUID
    doctor_id: UUID
    patient_id: UUID
    diagnosis: str
    medications: list[Medication]
    instructions: str
    doctor_notes: str
    pdf_url: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
