"""Appointment lifecycle: state transitions and chat/video gating."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.config import settings
from mediconnect.core.exceptions import (
    AppException,
    BadRequestException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
)
from mediconnect.core.tasks import EmailDispatcher
from mediconnect.core.video import VideoMeetingProvider, placeholder_join_url
from mediconnect.models.appointments import appointments
from mediconnect.models.doctors import doctors
from mediconnect.models.users import users
from mediconnect.schemas.appointments import (
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AppointmentType,
    MarkDoneResponse,
    PaymentStatus,
    PermissionsUpdate,
)
from mediconnect.services import email_messages
from mediconnect.services.doctor_service import DoctorService
from mediconnect.services.notification_service import NotificationService
from mediconnect.services.prescription_service import PrescriptionService

logger = structlog.get_logger(__name__)

TERMINAL_STATUSES = (AppointmentStatus.COMPLETED.value, AppointmentStatus.CANCELLED.value)


async def load_parties(db: AsyncSession, appointment: dict) -> dict[str, Any]:
    """Names and contact details of both sides of an appointment."""
    patient_result = await db.execute(
        select(users.c.full_name, users.c.email).where(users.c.id == appointment["patient_id"])
    )
    patient = patient_result.mappings().first()

    doctor_result = await db.execute(
        select(
            doctors.c.user_id,
            doctors.c.specialization,
            users.c.full_name,
            users.c.email,
        )
        .join(users, doctors.c.user_id == users.c.id)
        .where(doctors.c.id == appointment["doctor_id"])
    )
    doctor = doctor_result.mappings().first()

    return {
        "patient_id": appointment["patient_id"],
        "patient_name": patient["full_name"] if patient else "Patient",
        "patient_email": patient["email"] if patient else None,
        "doctor_user_id": doctor["user_id"] if doctor else None,
        "doctor_name": doctor["full_name"] if doctor else "Doctor",
        "doctor_email": doctor["email"] if doctor else None,
        "specialization": doctor["specialization"] if doctor else None,
    }


class AppointmentService:
    """Service for managing appointments after admission."""

    def __init__(
        self,
        db: AsyncSession,
        email_dispatcher: EmailDispatcher | None = None,
        video_provider: VideoMeetingProvider | None = None,
    ):
        """Initialize service with database session and side-effect collaborators."""
        self.db = db
        self.email = email_dispatcher
        self.video = video_provider

    async def _load(self, appointment_id: UUID) -> dict:
        result = await self.db.execute(select(appointments).where(appointments.c.id == appointment_id))
        row = result.mappings().first()

        if not row:
            raise NotFoundException("Appointment not found")

        return dict(row)

    async def _caller_doctor_id(self, user: dict) -> UUID | None:
        if user["role"] != "doctor":
            return None
        doctor = await DoctorService.get_doctor_by_user_id(self.db, user["id"])
        return doctor["id"] if doctor else None

    async def _load_for_doctor(
        self,
        appointment_id: UUID,
        user: dict,
        allow_admin: bool = False,
    ) -> dict:
        """Load an appointment the caller controls as its doctor."""
        appointment = await self._load(appointment_id)

        if allow_admin and user["role"] == "admin":
            return appointment

        if user["role"] != "doctor":
            raise ForbiddenException("Only doctors can perform this action")

        if await self._caller_doctor_id(user) != appointment["doctor_id"]:
            raise ForbiddenException("Not authorized for this appointment")

        return appointment

    async def _apply(self, appointment_id: UUID, values: dict[str, Any]) -> dict:
        """Write column changes and return the updated row. Does not commit."""
        values["updated_at"] = datetime.now(UTC)
        result = await self.db.execute(
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(**values)
            .returning(appointments)
        )
        return dict(result.mappings().one())

    async def _send_email(self, to: str | None, message: tuple[str, str]) -> bool:
        if not self.email or not to:
            return False
        subject, text = message
        return await self.email.send(to, subject, text)

    async def get_appointment(self, appointment_id: UUID, user: dict) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the caller is neither party nor an admin
        """
        appointment = await self._load(appointment_id)

        if user["role"] != "admin" and appointment["patient_id"] != user["id"]:
            if await self._caller_doctor_id(user) != appointment["doctor_id"]:
                raise ForbiddenException("Access denied to this appointment")

        return AppointmentResponse.from_row(appointment)

    async def list_appointments(
        self,
        user: dict,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List the caller's appointments, newest slot first.

        Patients see their bookings, doctors see bookings made with them and
        admins see everything.
        """
        conditions: list[Any] = []

        if user["role"] == "patient":
            conditions.append(appointments.c.patient_id == user["id"])
        elif user["role"] == "doctor":
            doctor_id = await self._caller_doctor_id(user)
            if doctor_id is None:
                return AppointmentListResponse(
                    total=0, page=filters.page, page_size=filters.page_size, items=[]
                )
            conditions.append(appointments.c.doctor_id == doctor_id)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.appointment_date:
            conditions.append(appointments.c.appointment_date == filters.appointment_date)

        where = and_(*conditions) if conditions else None

        count_stmt = select(func.count()).select_from(appointments)
        stmt = select(appointments)
        if where is not None:
            count_stmt = count_stmt.where(where)
            stmt = stmt.where(where)

        total = (await self.db.execute(count_stmt)).scalar() or 0

        result = await self.db.execute(
            stmt.order_by(
                appointments.c.appointment_date.desc(),
                appointments.c.appointment_time.desc(),
            )
            .limit(filters.page_size)
            .offset((filters.page - 1) * filters.page_size)
        )

        items = [AppointmentResponse.from_row(dict(row)) for row in result.mappings().all()]

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=items,
        )

    async def update_status(
        self,
        appointment_id: UUID,
        user: dict,
        data: AppointmentStatusUpdate,
    ) -> AppointmentResponse:
        """Dispatch a status change request to ``confirm`` or ``cancel``."""
        if data.status == AppointmentStatus.CONFIRMED:
            return await self.confirm(appointment_id, user)
        return await self.cancel(appointment_id, user, data.notes)

    async def confirm(self, appointment_id: UUID, user: dict) -> AppointmentResponse:
        """
        Doctor accepts an appointment, unlocking chat and video.

        A paid scheduled booking is already ``confirmed`` but still locked;
        the doctor's confirmation is what unlocks it.

        Raises:
            ForbiddenException: If the caller is not the appointment's doctor
            InvalidTransitionException: If the appointment is neither pending
                nor confirmed-and-locked
        """
        appointment = await self._load_for_doctor(appointment_id, user)

        awaiting_unlock = (
            appointment["status"] == AppointmentStatus.CONFIRMED.value
            and not appointment["chat_unlocked"]
            and not appointment["video_unlocked"]
        )
        if appointment["status"] != AppointmentStatus.PENDING.value and not awaiting_unlock:
            raise InvalidTransitionException(
                f"Cannot confirm an appointment that is {appointment['status']}"
            )

        now = datetime.now(UTC)
        row = await self._apply(
            appointment_id,
            {
                "status": AppointmentStatus.CONFIRMED.value,
                "chat_unlocked": True,
                "video_unlocked": True,
                "video_enabled_at": now,
            },
        )

        parties = await load_parties(self.db, row)
        await NotificationService.notify(
            self.db,
            row["patient_id"],
            "appointment_confirmed",
            f"Dr. {parties['doctor_name']} confirmed your appointment on "
            f"{row['appointment_date']} at {row['appointment_time']}.",
            {"appointment_id": row["id"]},
        )
        await self.db.commit()

        logger.info("appointment_confirmed", appointment_id=str(appointment_id))

        await self._send_email(
            parties["patient_email"],
            email_messages.confirmed_by_doctor(
                parties["patient_name"],
                parties["doctor_name"],
                row["appointment_date"],
                row["appointment_time"],
            ),
        )

        return AppointmentResponse.from_row(row)

    async def cancel(
        self,
        appointment_id: UUID,
        user: dict,
        notes: str | None = None,
    ) -> AppointmentResponse:
        """
        Patient or doctor cancels; the other party is notified.

        Raises:
            ForbiddenException: If the caller is not a party to the appointment
            InvalidTransitionException: If the appointment is already completed or cancelled
        """
        appointment = await self._load(appointment_id)

        cancelled_by_patient = appointment["patient_id"] == user["id"]
        if not cancelled_by_patient:
            if await self._caller_doctor_id(user) != appointment["doctor_id"]:
                raise ForbiddenException("Not authorized to cancel this appointment")

        if appointment["status"] in TERMINAL_STATUSES:
            raise InvalidTransitionException(
                f"Cannot cancel an appointment that is {appointment['status']}"
            )

        values: dict[str, Any] = {
            "status": AppointmentStatus.CANCELLED.value,
            "cancelled_at": datetime.now(UTC),
        }
        if notes:
            values["notes"] = notes

        row = await self._apply(appointment_id, values)

        parties = await load_parties(self.db, row)
        if cancelled_by_patient:
            recipient_id = parties["doctor_user_id"]
            recipient_name = f"Dr. {parties['doctor_name']}"
            recipient_email = parties["doctor_email"]
            cancelled_by = parties["patient_name"]
        else:
            recipient_id = row["patient_id"]
            recipient_name = parties["patient_name"]
            recipient_email = parties["patient_email"]
            cancelled_by = f"Dr. {parties['doctor_name']}"

        if recipient_id is not None:
            await NotificationService.notify(
                self.db,
                recipient_id,
                "appointment_cancelled",
                f"The appointment on {row['appointment_date']} at {row['appointment_time']} "
                f"was cancelled by {cancelled_by}.",
                {"appointment_id": row["id"]},
            )
        await self.db.commit()

        logger.info(
            "appointment_cancelled",
            appointment_id=str(appointment_id),
            by="patient" if cancelled_by_patient else "doctor",
        )

        await self._send_email(
            recipient_email,
            email_messages.cancelled(
                recipient_name,
                cancelled_by,
                row["appointment_date"],
                row["appointment_time"],
            ),
        )

        return AppointmentResponse.from_row(row)

    async def mark_done(self, appointment_id: UUID, user: dict) -> MarkDoneResponse:
        """
        Doctor completes a confirmed consultation.

        Chat is always locked afterwards and the payment is recorded as paid;
        the video flag is left as it was. The latest prescription, if any, is
        attached to the completion notification and email.

        Raises:
            ForbiddenException: If the caller is not the appointment's doctor
            InvalidTransitionException: If the appointment is not confirmed
        """
        appointment = await self._load_for_doctor(appointment_id, user)

        if appointment["status"] != AppointmentStatus.CONFIRMED.value:
            raise InvalidTransitionException(
                f"Cannot complete an appointment that is {appointment['status']}"
            )

        row = await self._apply(
            appointment_id,
            {
                "status": AppointmentStatus.COMPLETED.value,
                "chat_unlocked": False,
                "payment_status": PaymentStatus.PAID.value,
                "doctor_in_call": False,
                "completed_at": datetime.now(UTC),
            },
        )

        prescription = await PrescriptionService.latest_for_appointment(self.db, appointment_id)
        parties = await load_parties(self.db, row)

        await NotificationService.notify(
            self.db,
            row["patient_id"],
            "appointment_completed",
            f"Your consultation with Dr. {parties['doctor_name']} has been completed. "
            "Check your email for details and prescription.",
            {
                "appointment_id": row["id"],
                "prescription_id": prescription["id"] if prescription else None,
            },
        )
        await self.db.commit()

        logger.info(
            "appointment_completed",
            appointment_id=str(appointment_id),
            has_prescription=prescription is not None,
        )

        email_queued = await self._send_email(
            parties["patient_email"],
            email_messages.consultation_completed(
                parties["patient_name"],
                parties["doctor_name"],
                row["appointment_date"],
                row["appointment_time"],
                f"{settings.frontend_url}/dashboard",
                prescription,
            ),
        )

        return MarkDoneResponse(
            appointment=AppointmentResponse.from_row(row),
            prescription_id=prescription["id"] if prescription else None,
            email_queued=email_queued,
        )

    async def set_permissions(
        self,
        appointment_id: UUID,
        user: dict,
        data: PermissionsUpdate,
    ) -> AppointmentResponse:
        """
        Doctor toggles chat and video independently.

        A notification is emitted only when a flag actually changes value.
        Enabling video without a link keeps the stored link or synthesizes a
        placeholder; disabling clears it.

        Raises:
            ForbiddenException: If the caller is not the appointment's doctor
            InvalidTransitionException: If the appointment is completed or cancelled
        """
        appointment = await self._load_for_doctor(appointment_id, user)

        if appointment["status"] in TERMINAL_STATUSES:
            raise InvalidTransitionException(
                f"Cannot change permissions of an appointment that is {appointment['status']}"
            )

        now = datetime.now(UTC)
        values: dict[str, Any] = {}
        events: list[tuple[str, str]] = []

        if data.chat_unlocked is not None and data.chat_unlocked != appointment["chat_unlocked"]:
            values["chat_unlocked"] = data.chat_unlocked
            if data.chat_unlocked:
                events.append(("chat_enabled", "Chat has been enabled for your appointment"))
            else:
                events.append(("chat_disabled", "Chat has been disabled for your appointment"))

        if data.meeting_provider is not None:
            values["meeting_provider"] = data.meeting_provider
        if data.meeting_time is not None:
            values["meeting_time"] = data.meeting_time

        if data.video_unlocked is not None and data.video_unlocked != appointment["video_unlocked"]:
            if data.video_unlocked:
                provider = (
                    data.meeting_provider
                    or appointment["meeting_provider"]
                    or settings.meeting_provider
                )
                values.update(
                    video_unlocked=True,
                    video_enabled_at=now,
                    meeting_provider=provider,
                    meeting_join_url=(
                        data.join_url
                        or appointment["meeting_join_url"]
                        or placeholder_join_url(appointment_id, provider)
                    ),
                )
                events.append(("video_enabled", "Video call has been enabled for your appointment"))
            else:
                values.update(
                    video_unlocked=False,
                    video_disabled_at=now,
                    meeting_join_url=None,
                    doctor_in_call=False,
                )
                events.append(("video_disabled", "Video call has been disabled for your appointment"))
        elif data.join_url and appointment["video_unlocked"]:
            values["meeting_join_url"] = data.join_url

        row = await self._apply(appointment_id, values) if values else appointment

        for notification_type, message in events:
            await NotificationService.notify(
                self.db,
                row["patient_id"],
                notification_type,
                message,
                {"appointment_id": row["id"]},
            )

        send_link = data.auto_send and row["video_unlocked"] and row["meeting_join_url"]
        parties = await load_parties(self.db, row) if send_link else None

        if send_link and parties:
            for recipient_id in (row["patient_id"], parties["doctor_user_id"]):
                if recipient_id is None:
                    continue
                await NotificationService.notify(
                    self.db,
                    recipient_id,
                    "video_link",
                    f"Video call link for the appointment on {row['appointment_date']} "
                    f"at {row['appointment_time']}: {row['meeting_join_url']}",
                    {"appointment_id": row["id"], "join_url": row["meeting_join_url"]},
                )

        await self.db.commit()

        if values:
            logger.info(
                "appointment_permissions_updated",
                appointment_id=str(appointment_id),
                chat_unlocked=row["chat_unlocked"],
                video_unlocked=row["video_unlocked"],
                notifications=len(events),
            )

        if send_link and parties:
            await self._send_email(
                parties["patient_email"],
                email_messages.video_link(
                    parties["patient_name"],
                    row["appointment_date"],
                    row["appointment_time"],
                    row["meeting_join_url"],
                ),
            )
            await self._send_email(
                parties["doctor_email"],
                email_messages.video_link(
                    f"Dr. {parties['doctor_name']}",
                    row["appointment_date"],
                    row["appointment_time"],
                    row["meeting_join_url"],
                ),
            )

        return AppointmentResponse.from_row(row)

    async def toggle_chat(self, appointment_id: UUID, user: dict) -> AppointmentResponse:
        """Flip ``chat_unlocked``."""
        appointment = await self._load_for_doctor(appointment_id, user)
        return await self.set_permissions(
            appointment_id,
            user,
            PermissionsUpdate(chat_unlocked=not appointment["chat_unlocked"]),
        )

    async def _set_doctor_in_call(
        self,
        appointment_id: UUID,
        user: dict,
        in_call: bool,
    ) -> AppointmentResponse:
        appointment = await self._load_for_doctor(appointment_id, user, allow_admin=True)

        if in_call and not appointment["video_unlocked"]:
            raise BadRequestException("Video is not enabled for this appointment")

        row = await self._apply(appointment_id, {"doctor_in_call": in_call})
        await self.db.commit()

        logger.info(
            "doctor_joined_call" if in_call else "doctor_left_call",
            appointment_id=str(appointment_id),
        )

        return AppointmentResponse.from_row(row)

    async def doctor_join_call(self, appointment_id: UUID, user: dict) -> AppointmentResponse:
        """Record that the doctor is in the video call."""
        return await self._set_doctor_in_call(appointment_id, user, True)

    async def doctor_leave_call(self, appointment_id: UUID, user: dict) -> AppointmentResponse:
        """Record that the doctor left the video call."""
        return await self._set_doctor_in_call(appointment_id, user, False)

    async def provision_meeting(self, appointment: dict) -> dict:
        """
        Create a meeting with the video provider and store its details.

        Commits on success. Provider errors propagate to the caller.
        """
        if self.video is None:
            raise AppException(
                "No video meeting provider configured",
                status_code=503,
                code="meeting_provider_unavailable",
            )

        parties = await load_parties(self.db, appointment)
        meeting = await self.video.create_meeting(
            appointment_id=appointment["id"],
            patient_name=parties["patient_name"],
            doctor_name=parties["doctor_name"],
            appointment_date=appointment["appointment_date"],
            appointment_time=appointment["appointment_time"],
        )

        row = await self._apply(
            appointment["id"],
            {
                "meeting_provider": meeting.provider,
                "meeting_id": meeting.meeting_id,
                "meeting_join_url": meeting.join_url,
                "meeting_host_url": meeting.host_url,
            },
        )
        await self.db.commit()

        logger.info(
            "meeting_provisioned",
            appointment_id=str(appointment["id"]),
            provider=meeting.provider,
        )

        return row

    async def provision_meeting_best_effort(self, appointment: dict) -> dict:
        """``provision_meeting`` that logs and swallows failures."""
        try:
            return await self.provision_meeting(appointment)
        except Exception as e:
            await self.db.rollback()
            logger.warning(
                "meeting_provision_failed",
                appointment_id=str(appointment["id"]),
                error=str(e),
            )
            return appointment

    async def refresh_meeting(self, appointment_id: UUID, user: dict) -> AppointmentResponse:
        """
        Re-provision the video meeting, keeping the enabled state.

        Raises:
            ForbiddenException: If the caller is neither the doctor nor an admin
            InvalidTransitionException: If the appointment is completed or cancelled
            AppException: If the provider call fails (502)
        """
        appointment = await self._load_for_doctor(appointment_id, user, allow_admin=True)

        if appointment["status"] in TERMINAL_STATUSES:
            raise InvalidTransitionException(
                f"Cannot refresh the meeting of an appointment that is {appointment['status']}"
            )

        try:
            row = await self.provision_meeting(appointment)
        except AppException:
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error("meeting_refresh_failed", appointment_id=str(appointment_id), error=str(e))
            raise AppException(
                "Failed to refresh video meeting",
                status_code=502,
                code="meeting_provider_error",
            )

        return AppointmentResponse.from_row(row)

    @staticmethod
    def is_emergency(appointment: dict) -> bool:
        """Check if the appointment was booked as an emergency."""
        return appointment["appointment_type"] == AppointmentType.EMERGENCY.value
