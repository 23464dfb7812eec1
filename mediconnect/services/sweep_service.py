"""Auto-cancellation of bookings left unpaid."""

from datetime import UTC, datetime, timedelta

import structlog
from sqlalchemy import and_, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.config import settings
from mediconnect.models.appointments import appointments
from mediconnect.schemas.appointments import AppointmentStatus, PaymentStatus

logger = structlog.get_logger(__name__)

# A failed payment leaves the booking as unpaid as one never attempted
UNPAID_STATUSES = (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value)


async def cancel_stale_appointments(
    db: AsyncSession,
    older_than_minutes: int | None = None,
    now: datetime | None = None,
) -> int:
    """
    Cancel pending appointments with a pending or failed payment created before the cutoff.

    Args:
        db: Database session
        older_than_minutes: Age threshold, defaults to ``AUTO_CANCEL_AFTER_MINUTES``
        now: Reference time, defaults to the current UTC time

    Returns:
        Number of appointments cancelled
    """
    minutes = older_than_minutes if older_than_minutes is not None else settings.auto_cancel_after_minutes
    now = now or datetime.now(UTC)
    cutoff = now - timedelta(minutes=minutes)

    result = await db.execute(
        update(appointments)
        .where(
            and_(
                appointments.c.status == AppointmentStatus.PENDING.value,
                appointments.c.payment_status.in_(UNPAID_STATUSES),
                appointments.c.created_at < cutoff,
            )
        )
        .values(
            status=AppointmentStatus.CANCELLED.value,
            cancelled_at=now,
            updated_at=now,
        )
        .returning(appointments.c.id)
    )
    cancelled_ids = list(result.scalars().all())
    await db.commit()

    if cancelled_ids:
        logger.info(
            "stale_appointments_cancelled",
            count=len(cancelled_ids),
            appointment_ids=[str(i) for i in cancelled_ids],
        )

    return len(cancelled_ids)
