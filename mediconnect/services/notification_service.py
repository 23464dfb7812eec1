"""In-app notification sink and inbox."""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.core.exceptions import ForbiddenException, NotFoundException
from mediconnect.models.notifications import notifications
from mediconnect.schemas.notifications import (
    NotificationListResponse,
    NotificationRecord,
)

logger = structlog.get_logger(__name__)


def _jsonable(data: dict[str, Any] | None) -> dict[str, Any] | None:
    """Stringify ids, dates and decimals so the payload fits a JSON column."""
    if data is None:
        return None
    return {
        key: value if value is None or isinstance(value, (str, int, float, bool)) else str(value)
        for key, value in data.items()
    }


class NotificationService:
    """Service for the per-user notification inbox."""

    @staticmethod
    async def append(
        db: AsyncSession,
        user_id: UUID,
        notification_type: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> dict:
        """
        Write one inbox entry in the caller's transaction.

        Args:
            db: Database session
            user_id: Recipient user ID
            notification_type: Machine-readable kind, e.g. ``preempted``
            message: Human-readable text
            data: Optional structured payload

        Returns:
            The stored entry
        """
        result = await db.execute(
            insert(notifications)
            .values(
                user_id=user_id,
                notification_type=notification_type,
                message=message,
                data=_jsonable(data),
            )
            .returning(notifications)
        )
        return dict(result.mappings().one())

    @staticmethod
    async def notify(
        db: AsyncSession,
        user_id: UUID,
        notification_type: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> bool:
        """
        Best-effort ``append``.

        The insert runs inside a SAVEPOINT, so a failure is rolled back on its
        own and the surrounding state transition still commits.

        Returns:
            True if the entry was written
        """
        try:
            async with db.begin_nested():
                await NotificationService.append(db, user_id, notification_type, message, data)
            return True
        except Exception as e:
            logger.warning(
                "notification_append_failed",
                user_id=str(user_id),
                notification_type=notification_type,
                error=str(e),
            )
            return False

    @staticmethod
    async def list_notifications(
        db: AsyncSession,
        user_id: UUID,
        page: int = 1,
        page_size: int = 20,
        unread_only: bool = False,
    ) -> NotificationListResponse:
        """List the user's inbox, newest first."""
        conditions = [notifications.c.user_id == user_id]
        if unread_only:
            conditions.append(notifications.c.is_read.is_(False))

        count_stmt = select(func.count()).select_from(notifications).where(and_(*conditions))
        total = (await db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(notifications)
            .where(and_(*conditions))
            .order_by(notifications.c.created_at.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        result = await db.execute(stmt)

        items = [NotificationRecord.model_validate(dict(row)) for row in result.mappings().all()]

        return NotificationListResponse(total=total, page=page, page_size=page_size, items=items)

    @staticmethod
    async def unread_count(db: AsyncSession, user_id: UUID) -> int:
        """Count unread inbox entries."""
        stmt = (
            select(func.count())
            .select_from(notifications)
            .where(and_(notifications.c.user_id == user_id, notifications.c.is_read.is_(False)))
        )
        return (await db.execute(stmt)).scalar() or 0

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: UUID,
        user_id: UUID,
    ) -> NotificationRecord:
        """
        Mark one entry read.

        Raises:
            NotFoundException: If the notification does not exist
            ForbiddenException: If it belongs to another user
        """
        result = await db.execute(select(notifications).where(notifications.c.id == notification_id))
        row = result.mappings().first()

        if not row:
            raise NotFoundException("Notification not found")

        if row["user_id"] != user_id:
            raise ForbiddenException("Not authorized to modify this notification")

        result = await db.execute(
            update(notifications)
            .where(notifications.c.id == notification_id)
            .values(is_read=True)
            .returning(notifications)
        )
        await db.commit()

        return NotificationRecord.model_validate(dict(result.mappings().one()))

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: UUID) -> int:
        """Mark every unread entry read; returns how many changed."""
        result = await db.execute(
            update(notifications)
            .where(and_(notifications.c.user_id == user_id, notifications.c.is_read.is_(False)))
            .values(is_read=True)
        )
        await db.commit()
        return result.rowcount or 0
