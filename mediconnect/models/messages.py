"""Appointment chat messages model."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    Uuid,
    false,
    func,
)

from mediconnect.models.base import metadata, new_uuid

messages = Table(
    "messages",
    metadata,
    Column("id", Uuid, primary_key=True, default=new_uuid),
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("sender_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("content", Text, nullable=False, server_default=""),
    Column("file_url", Text, nullable=False, server_default=""),
    Column("message_type", String(10), nullable=False, server_default="text"),
    Column("is_read", Boolean, nullable=False, server_default=false()),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Index("idx_messages_appointment_created", "appointment_id", "created_at"),
)
