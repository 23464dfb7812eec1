"""Prescriptions model."""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Table,
    Text,
    Uuid,
    func,
)

from mediconnect.models.base import metadata, new_uuid

prescriptions = Table(
    "prescriptions",
    metadata,
    Column("id", Uuid, primary_key=True, default=new_uuid),
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("doctor_id", Uuid, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False),
    Column("patient_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("diagnosis", Text, nullable=False),
    # [{"name", "dosage", "frequency", "duration"}, ...]
    Column("medications", JSON, nullable=False, default=list),
    Column("instructions", Text, nullable=False, server_default=""),
    Column("doctor_notes", Text, nullable=False, server_default=""),
    Column("pdf_url", Text),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
