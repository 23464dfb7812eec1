"""Weekly availability windows per doctor."""

from datetime import UTC, date, datetime
from uuid import UUID

import structlog
from sqlalchemy import and_, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.core.exceptions import ForbiddenException
from mediconnect.models.doctors import availabilities, doctors
from mediconnect.schemas.availability import AvailabilityResponse, AvailabilityWindow

logger = structlog.get_logger(__name__)


def time_to_minutes(value: str) -> int:
    """Convert ``HH:MM`` to minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def is_within_window(time_value: str, start_time: str, end_time: str) -> bool:
    """Half-open check: ``start <= t < end``."""
    t = time_to_minutes(time_value)
    return time_to_minutes(start_time) <= t < time_to_minutes(end_time)


def day_of_week(value: date) -> int:
    """Weekday index with 0 = Sunday."""
    return value.isoweekday() % 7


class AvailabilityService:
    """Service for the availability index."""

    @staticmethod
    async def get_window(db: AsyncSession, doctor_id: UUID, day: int) -> dict | None:
        """Get the doctor's window for one weekday, if any."""
        result = await db.execute(
            select(availabilities).where(
                and_(
                    availabilities.c.doctor_id == doctor_id,
                    availabilities.c.day_of_week == day,
                )
            )
        )
        row = result.mappings().first()
        return dict(row) if row else None

    @staticmethod
    async def list_windows(db: AsyncSession, doctor_id: UUID) -> list[AvailabilityResponse]:
        """List a doctor's windows sorted by weekday."""
        result = await db.execute(
            select(availabilities)
            .where(availabilities.c.doctor_id == doctor_id)
            .order_by(availabilities.c.day_of_week)
        )
        return [AvailabilityResponse.model_validate(dict(row)) for row in result.mappings().all()]

    @staticmethod
    async def upsert_window(
        db: AsyncSession,
        user: dict,
        doctor_id: UUID,
        day: int,
        window: AvailabilityWindow,
    ) -> AvailabilityResponse:
        """
        Create or replace the window for ``(doctor_id, day)``.

        Args:
            db: Database session
            user: Calling user
            doctor_id: Doctor whose schedule is edited
            day: Weekday, 0 = Sunday
            window: New open hours

        Raises:
            ForbiddenException: If the caller does not own the doctor profile
        """
        result = await db.execute(select(doctors.c.user_id).where(doctors.c.id == doctor_id))
        owner_id = result.scalar_one_or_none()

        if user["role"] != "doctor" or owner_id is None or owner_id != user["id"]:
            raise ForbiddenException("Not authorized to edit this doctor's availability")

        values = window.model_dump()
        existing = await AvailabilityService.get_window(db, doctor_id, day)

        if existing:
            stmt = (
                update(availabilities)
                .where(availabilities.c.id == existing["id"])
                .values(**values, updated_at=datetime.now(UTC))
                .returning(availabilities)
            )
        else:
            stmt = (
                insert(availabilities)
                .values(doctor_id=doctor_id, day_of_week=day, **values)
                .returning(availabilities)
            )

        result = await db.execute(stmt)
        row = result.mappings().one()
        await db.commit()

        logger.info(
            "availability_upserted",
            doctor_id=str(doctor_id),
            day_of_week=day,
            created=existing is None,
        )

        return AvailabilityResponse.model_validate(dict(row))
