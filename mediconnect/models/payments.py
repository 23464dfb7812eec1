"""Payment records model."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    func,
)

from mediconnect.models.base import metadata, new_uuid

payments = Table(
    "payments",
    metadata,
    Column("id", Uuid, primary_key=True, default=new_uuid),
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("patient_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("amount", Numeric(10, 2), nullable=False),
    Column("status", String(20), nullable=False),
    Column("gateway_order_id", Text),
    # Redelivered gateway events carry the same payment id
    Column("gateway_payment_id", Text, unique=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("status IN ('completed', 'failed')", name="payments_status_check"),
)
