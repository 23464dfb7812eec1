"""In-app notification inbox model."""

from sqlalchemy import (
    JSON,
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

notifications = Table(
    "notifications",
    metadata,
    Column("id", Uuid, primary_key=True, default=new_uuid),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("notification_type", String(50), nullable=False, server_default="info"),
    Column("message", Text, nullable=False),
    Column("data", JSON, nullable=True),
    Column("is_read", Boolean, nullable=False, server_default=false()),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Index("idx_notifications_user_id", "user_id"),
    Index("idx_notifications_user_read", "user_id", "is_read"),
)
