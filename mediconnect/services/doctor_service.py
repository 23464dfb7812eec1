"""Doctor directory and verification service."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from mediconnect.core.redis_client import CacheManager
from mediconnect.core.tasks import EmailDispatcher
from mediconnect.models.doctors import doctors
from mediconnect.models.users import users
from mediconnect.schemas.doctors import (
    DoctorCreate,
    DoctorResponse,
    DoctorUpdate,
    VerificationStatus,
)
from mediconnect.services.notification_service import NotificationService

logger = structlog.get_logger(__name__)


def _with_user_columns():
    """Doctor columns plus the joined public user fields."""
    return select(
        doctors,
        users.c.full_name,
        users.c.email,
        users.c.avatar_url,
    ).join(users, doctors.c.user_id == users.c.id)


class DoctorService:
    """Service for doctor operations."""

    # Cache TTL in seconds (15 minutes for individual doctors)
    DOCTOR_CACHE_TTL = 900

    def __init__(
        self,
        cache_manager: CacheManager | None = None,
        email_dispatcher: EmailDispatcher | None = None,
    ):
        """Initialize service with optional cache manager and email dispatcher."""
        self.cache = cache_manager
        self.email = email_dispatcher

    @staticmethod
    def _get_doctor_cache_key(doctor_id: UUID) -> str:
        """Generate cache key for doctor."""
        return f"doctor:{doctor_id}"

    def _invalidate(self, doctor_id: UUID) -> None:
        if self.cache:
            self.cache.delete(self._get_doctor_cache_key(doctor_id))

    @staticmethod
    async def get_doctor_row(db: AsyncSession, doctor_id: UUID) -> dict | None:
        """Get the raw doctor row, bypassing the cache."""
        result = await db.execute(select(doctors).where(doctors.c.id == doctor_id))
        row = result.mappings().first()
        return dict(row) if row else None

    @staticmethod
    async def get_doctor_by_user_id(db: AsyncSession, user_id: UUID) -> dict | None:
        """Get the doctor profile owned by a user."""
        result = await db.execute(select(doctors).where(doctors.c.user_id == user_id))
        row = result.mappings().first()
        return dict(row) if row else None

    async def create_doctor(
        self,
        db: AsyncSession,
        user: dict,
        data: DoctorCreate,
    ) -> DoctorResponse:
        """
        Register the caller's doctor profile. New profiles start unverified.

        Raises:
            ForbiddenException: If the caller is not a doctor
            ConflictException: If the caller already has a profile
        """
        if user["role"] != "doctor":
            raise ForbiddenException("Only doctor accounts can create a doctor profile")

        if await self.get_doctor_by_user_id(db, user["id"]):
            raise ConflictException("Doctor profile already exists")

        result = await db.execute(
            insert(doctors)
            .values(user_id=user["id"], rejection_history=[], **data.model_dump())
            .returning(doctors.c.id)
        )
        doctor_id = result.scalar_one()
        await db.commit()

        logger.info("doctor_profile_created", doctor_id=str(doctor_id), user_id=str(user["id"]))

        return await self.get_doctor(db, doctor_id)

    async def get_doctor(self, db: AsyncSession, doctor_id: UUID) -> DoctorResponse:
        """
        Get doctor with user details, cached for 15 minutes.

        Raises:
            NotFoundException: If doctor not found
        """
        if self.cache:
            cached = self.cache.get_json(self._get_doctor_cache_key(doctor_id))
            if cached:
                return DoctorResponse.model_validate(cached)

        result = await db.execute(_with_user_columns().where(doctors.c.id == doctor_id))
        row = result.mappings().first()

        if not row:
            raise NotFoundException("Doctor not found")

        doctor = DoctorResponse.model_validate(dict(row))

        if self.cache:
            self.cache.set_json(
                self._get_doctor_cache_key(doctor_id),
                doctor.model_dump(mode="json"),
                ttl=self.DOCTOR_CACHE_TTL,
            )

        return doctor

    @staticmethod
    async def list_doctors(
        db: AsyncSession,
        specialization: str | None = None,
        verification_status: VerificationStatus | None = VerificationStatus.VERIFIED,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[DoctorResponse], int]:
        """
        List doctors. The public directory only shows verified doctors.

        Returns:
            Tuple of (doctors, total count)
        """
        conditions: list[Any] = []
        if verification_status is not None:
            conditions.append(doctors.c.verification_status == verification_status.value)
        if specialization:
            conditions.append(doctors.c.specialization.ilike(f"%{specialization}%"))

        count_stmt = select(func.count()).select_from(doctors)
        stmt = _with_user_columns()
        if conditions:
            count_stmt = count_stmt.where(and_(*conditions))
            stmt = stmt.where(and_(*conditions))

        total = (await db.execute(count_stmt)).scalar() or 0

        result = await db.execute(
            stmt.order_by(doctors.c.created_at.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        items = [DoctorResponse.model_validate(dict(row)) for row in result.mappings().all()]

        return items, total

    async def update_doctor(
        self,
        db: AsyncSession,
        doctor_id: UUID,
        user: dict,
        data: DoctorUpdate,
    ) -> DoctorResponse:
        """
        Update a doctor profile. Only its owner may do so.

        Raises:
            NotFoundException: If doctor not found
            ForbiddenException: If the caller does not own the profile
        """
        doctor = await self.get_doctor_row(db, doctor_id)
        if not doctor:
            raise NotFoundException("Doctor not found")

        if doctor["user_id"] != user["id"]:
            raise ForbiddenException("Not authorized to update this doctor profile")

        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        if update_data:
            update_data["updated_at"] = datetime.now(UTC)
            await db.execute(update(doctors).where(doctors.c.id == doctor_id).values(**update_data))
            await db.commit()
            self._invalidate(doctor_id)

        return await self.get_doctor(db, doctor_id)

    async def verify_doctor(self, db: AsyncSession, doctor_id: UUID) -> DoctorResponse:
        """Approve a doctor application (admin)."""
        doctor = await self.get_doctor_row(db, doctor_id)
        if not doctor:
            raise NotFoundException("Doctor not found")

        now = datetime.now(UTC)
        await db.execute(
            update(doctors)
            .where(doctors.c.id == doctor_id)
            .values(
                is_verified=True,
                verification_status=VerificationStatus.VERIFIED.value,
                rejection_reason=None,
                verified_at=now,
                updated_at=now,
            )
        )
        await NotificationService.notify(
            db,
            doctor["user_id"],
            "doctor_verified",
            "Your doctor application has been approved. You can now accept appointments.",
            {"doctor_id": doctor_id},
        )
        await db.commit()
        self._invalidate(doctor_id)

        logger.info("doctor_verified", doctor_id=str(doctor_id))

        result = await self.get_doctor(db, doctor_id)
        if self.email and result.email:
            await self.email.send(
                result.email,
                "Application Approved - MediConnect",
                f"Dear Dr. {result.full_name},\n\n"
                "Your application has been approved. You can now set your availability "
                "and start accepting appointments.\n\n"
                "Best regards,\nThe MediConnect Team",
            )
        return result

    async def reject_doctor(
        self,
        db: AsyncSession,
        doctor_id: UUID,
        reason: str,
    ) -> DoctorResponse:
        """Reject a doctor application (admin), appending to its rejection history."""
        doctor = await self.get_doctor_row(db, doctor_id)
        if not doctor:
            raise NotFoundException("Doctor not found")

        now = datetime.now(UTC)
        history = list(doctor["rejection_history"] or [])
        history.append({"reason": reason, "rejected_at": now.isoformat()})

        await db.execute(
            update(doctors)
            .where(doctors.c.id == doctor_id)
            .values(
                is_verified=False,
                verification_status=VerificationStatus.REJECTED.value,
                rejection_reason=reason,
                rejection_history=history,
                verified_at=None,
                updated_at=now,
            )
        )
        await NotificationService.notify(
            db,
            doctor["user_id"],
            "doctor_rejected",
            f"Your doctor application was rejected: {reason}",
            {"doctor_id": doctor_id},
        )
        await db.commit()
        self._invalidate(doctor_id)

        logger.info("doctor_rejected", doctor_id=str(doctor_id))

        result = await self.get_doctor(db, doctor_id)
        if self.email and result.email:
            await self.email.send(
                result.email,
                "Application Update - MediConnect",
                f"Dear Dr. {result.full_name},\n\n"
                f"Unfortunately your application was not approved.\n\nReason: {reason}\n\n"
                "You may update your profile and apply again.\n\n"
                "Best regards,\nThe MediConnect Team",
            )
        return result

    async def delete_doctor(self, db: AsyncSession, doctor_id: UUID) -> None:
        """
        Delete a doctor and the linked user account (admin).

        Availability, appointments and prescriptions go with it through the
        foreign key cascades.
        """
        doctor = await self.get_doctor_row(db, doctor_id)
        if not doctor:
            raise NotFoundException("Doctor not found")

        await db.execute(delete(doctors).where(doctors.c.id == doctor_id))
        await db.execute(delete(users).where(users.c.id == doctor["user_id"]))
        await db.commit()
        self._invalidate(doctor_id)

        logger.info("doctor_deleted", doctor_id=str(doctor_id), user_id=str(doctor["user_id"]))
