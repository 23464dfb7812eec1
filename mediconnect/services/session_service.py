"""Single-active-session issuing and validation."""

import secrets
from datetime import UTC, datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.config import settings
from mediconnect.core.exceptions import (
    ForbiddenException,
    SessionInvalidatedException,
    UnauthorizedException,
)
from mediconnect.core.security import create_session_token, decode_session_token
from mediconnect.models.users import user_sessions, users

logger = structlog.get_logger(__name__)

_DIALECT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


class SessionService:
    """
    Issues and validates bearer credentials bound to one live session per user.

    The ``user_sessions`` row is the only source of truth: a token whose
    ``sid`` claim does not match the stored session id is rejected even when
    its signature and expiry are valid.
    """

    @staticmethod
    async def issue_session(db: AsyncSession, user_id: UUID) -> str:
        """
        Start a new session, superseding any previous one.

        The caller owns the transaction; the session row is written but not
        committed here.

        Args:
            db: Database session
            user_id: User to issue the session for

        Returns:
            Encoded session token
        """
        session_id = secrets.token_hex(16)
        now = datetime.now(UTC)
        expires_delta = timedelta(days=settings.session_expire_days)

        values = {
            "session_id": session_id,
            "issued_at": now,
            "expires_at": now + expires_delta,
        }
        # Concurrent logins overwrite the same row; the last write wins
        dialect_insert = _DIALECT_INSERTS[db.get_bind().dialect.name]
        await db.execute(
            dialect_insert(user_sessions)
            .values(user_id=user_id, **values)
            .on_conflict_do_update(index_elements=[user_sessions.c.user_id], set_=values)
        )

        logger.info("session_issued", user_id=str(user_id))

        return create_session_token(str(user_id), session_id, expires_delta=expires_delta)

    @staticmethod
    async def validate(db: AsyncSession, token: str) -> dict:
        """
        Resolve a bearer token to its user.

        Raises:
            UnauthorizedException: Token invalid, expired or for an unknown user
            SessionInvalidatedException: Token superseded by a newer login or a logout
            ForbiddenException: User account is deactivated
        """
        payload = decode_session_token(token)
        if payload is None:
            raise UnauthorizedException("Could not validate credentials")

        try:
            user_id = UUID(str(payload.get("sub")))
        except ValueError:
            raise UnauthorizedException("Could not validate credentials")

        result = await db.execute(select(users).where(users.c.id == user_id))
        user = result.mappings().first()
        if not user:
            raise UnauthorizedException("User not found")

        result = await db.execute(
            select(user_sessions.c.session_id).where(user_sessions.c.user_id == user_id)
        )
        current_sid = result.scalar_one_or_none()
        token_sid = payload.get("sid")

        if not token_sid or current_sid is None or token_sid != current_sid:
            logger.info("session_rejected_superseded", user_id=str(user_id))
            raise SessionInvalidatedException()

        if not user["is_active"]:
            raise ForbiddenException("User account is deactivated")

        return dict(user)

    @staticmethod
    async def invalidate(db: AsyncSession, user_id: UUID) -> None:
        """End the user's session so every outstanding token stops working."""
        await db.execute(delete(user_sessions).where(user_sessions.c.user_id == user_id))
        await db.commit()
        logger.info("session_invalidated", user_id=str(user_id))
