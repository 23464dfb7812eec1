"""Doctor and availability models using SQLAlchemy Core."""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    false,
    func,
    true,
)

from mediconnect.models.base import metadata, new_uuid

doctors = Table(
    "doctors",
    metadata,
    Column("id", Uuid, primary_key=True, default=new_uuid),
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    ),
    # Professional details
    Column("specialization", String(200), nullable=False, index=True),
    Column("experience_years", Integer, nullable=False),
    Column("bio", Text, nullable=False, server_default=""),
    Column("state", String(100), nullable=False, server_default=""),
    Column("location", Text, nullable=False, server_default=""),
    Column("profile_image_url", Text),
    # Fees
    Column("consultation_fee", Numeric(10, 2), nullable=False),
    Column("emergency_fee", Numeric(10, 2), nullable=False, server_default="0"),
    # Verification
    Column("medical_license_url", Text, nullable=False, server_default=""),
    Column("is_verified", Boolean, nullable=False, server_default=false(), index=True),
    Column("verification_status", String(20), nullable=False, server_default="pending"),
    Column("rejection_reason", Text),
    Column("rejection_history", JSON, nullable=False, default=list),
    Column("verified_at", DateTime(timezone=True)),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "verification_status IN ('pending', 'verified', 'rejected')",
        name="doctors_verification_status_check",
    ),
)

# One recurring weekly window per doctor per day (0=Sunday .. 6=Saturday)
availabilities = Table(
    "availabilities",
    metadata,
    Column("id", Uuid, primary_key=True, default=new_uuid),
    Column(
        "doctor_id",
        Uuid,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("day_of_week", Integer, nullable=False),
    Column("start_time", String(5), nullable=False),
    Column("end_time", String(5), nullable=False),
    Column("is_available", Boolean, nullable=False, server_default=true()),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    UniqueConstraint("doctor_id", "day_of_week", name="uq_availabilities_doctor_day"),
    CheckConstraint("day_of_week BETWEEN 0 AND 6", name="availabilities_day_check"),
)
