"""User and session models using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    Table,
    Text,
    Uuid,
    false,
    func,
    true,
)

from mediconnect.models.base import metadata, new_uuid

users = Table(
    "users",
    metadata,
    Column("id", Uuid, primary_key=True, default=new_uuid),
    # Credentials
    Column("email", Text, nullable=False, unique=True, index=True),
    Column("password_hash", Text, nullable=False),
    # Profile info (mutable)
    Column("full_name", Text, nullable=False),
    Column("phone", String(20), nullable=False, server_default=""),
    Column("avatar_url", Text, nullable=False, server_default=""),
    Column("locale", String(10), nullable=False, server_default="en"),
    Column("role", String(20), nullable=False, server_default="patient"),
    # Account state
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("email_notifications", Boolean, nullable=False, server_default=true()),
    Column("is_onboarded", Boolean, nullable=False, server_default=false()),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("last_login_at", DateTime(timezone=True)),
    CheckConstraint("role IN ('patient', 'doctor', 'admin')", name="users_role_check"),
)

# Single-slot session table: the primary key on user_id means a user can hold
# at most one live session id. Replacing the row invalidates every credential
# minted for the previous session.
user_sessions = Table(
    "user_sessions",
    metadata,
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("session_id", String(64), nullable=False),
    Column("issued_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("expires_at", DateTime(timezone=True), nullable=False),
)
