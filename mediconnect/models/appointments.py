"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    false,
    func,
    text,
)

from mediconnect.models.base import metadata, new_uuid

ACTIVE_SLOT_PREDICATE = text("status <> 'cancelled'")

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=new_uuid),
    # Ownership / references
    Column(
        "doctor_id",
        Uuid,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column(
        "patient_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    # Slot
    Column("appointment_date", Date, nullable=False),
    Column("appointment_time", String(5), nullable=False),
    Column("appointment_type", String(20), nullable=False, server_default="scheduled"),
    # Status management
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("payment_status", String(20), nullable=False, server_default="pending"),
    Column("amount", Numeric(10, 2), nullable=False),
    Column("notes", Text, nullable=False, server_default=""),
    # Capability gates
    Column("chat_unlocked", Boolean, nullable=False, server_default=false()),
    Column("video_unlocked", Boolean, nullable=False, server_default=false()),
    # Video meeting
    Column("meeting_provider", String(20)),
    Column("meeting_id", Text),
    Column("meeting_join_url", Text),
    Column("meeting_host_url", Text),
    Column("meeting_time", DateTime(timezone=True)),
    Column("video_enabled_at", DateTime(timezone=True)),
    Column("video_disabled_at", DateTime(timezone=True)),
    Column("doctor_in_call", Boolean, nullable=False, server_default=false()),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("cancelled_at", DateTime(timezone=True)),
    Column("completed_at", DateTime(timezone=True)),
    # Constraints
    CheckConstraint(
        "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "payment_status IN ('pending', 'paid', 'failed')",
        name="appointments_payment_status_check",
    ),
    CheckConstraint(
        "appointment_type IN ('scheduled', 'emergency')",
        name="appointments_type_check",
    ),
    # At most one live booking per slot. Closes the race between the
    # admission check and the insert.
    Index(
        "uq_appointments_active_slot",
        "doctor_id",
        "appointment_date",
        "appointment_time",
        unique=True,
        postgresql_where=ACTIVE_SLOT_PREDICATE,
        sqlite_where=ACTIVE_SLOT_PREDICATE,
    ),
    Index("idx_appointments_status_payment", "status", "payment_status"),
)
