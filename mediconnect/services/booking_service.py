"""Slot admission: exclusivity for scheduled bookings, preemption for emergencies."""

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.core.exceptions import (
    DoctorUnavailableException,
    ForbiddenException,
    NotFoundException,
    OutsideHoursException,
    SlotTakenException,
)
from mediconnect.core.tasks import EmailDispatcher
from mediconnect.core.video import VideoMeetingProvider
from mediconnect.models.appointments import appointments
from mediconnect.schemas.appointments import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentType,
    PaymentStatus,
)
from mediconnect.services import email_messages
from mediconnect.services.appointment_service import AppointmentService, load_parties
from mediconnect.services.availability_service import (
    AvailabilityService,
    day_of_week,
    is_within_window,
)
from mediconnect.services.doctor_service import DoctorService
from mediconnect.services.notification_service import NotificationService

logger = structlog.get_logger(__name__)

PREEMPTION_NOTE = " Preempted by emergency booking"


def _occupants(doctor_id: UUID, appointment_date: date, appointment_time: str):
    """Select non-cancelled appointments holding a slot."""
    return select(appointments).where(
        and_(
            appointments.c.doctor_id == doctor_id,
            appointments.c.appointment_date == appointment_date,
            appointments.c.appointment_time == appointment_time,
            appointments.c.status != AppointmentStatus.CANCELLED.value,
        )
    )


class BookingService:
    """Admits or rejects booking requests."""

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

    async def check_scheduled_slot(
        self,
        doctor_id: UUID,
        appointment_date: date,
        appointment_time: str,
    ) -> None:
        """
        Run the admission checks for a scheduled booking.

        Raises:
            DoctorUnavailableException: No open window on that weekday
            OutsideHoursException: Time not within ``[start, end)``
            SlotTakenException: A non-cancelled appointment holds the slot
        """
        window = await AvailabilityService.get_window(
            self.db, doctor_id, day_of_week(appointment_date)
        )
        if not window or not window["is_available"]:
            raise DoctorUnavailableException()

        if not is_within_window(appointment_time, window["start_time"], window["end_time"]):
            raise OutsideHoursException()

        result = await self.db.execute(_occupants(doctor_id, appointment_date, appointment_time))
        if result.first() is not None:
            raise SlotTakenException()

    async def preempt_slot(
        self,
        doctor_id: UUID,
        appointment_date: date,
        appointment_time: str,
    ) -> list[UUID]:
        """
        Cancel every live occupant of a slot and notify each displaced patient.

        Runs in the caller's transaction. A completed appointment is terminal,
        so a slot it holds cannot be preempted.

        Returns:
            IDs of the cancelled appointments

        Raises:
            SlotTakenException: A completed appointment holds the slot
        """
        result = await self.db.execute(
            _occupants(doctor_id, appointment_date, appointment_time).with_for_update()
        )
        displaced = [dict(row) for row in result.mappings().all()]

        if any(row["status"] == AppointmentStatus.COMPLETED.value for row in displaced):
            raise SlotTakenException("This slot holds a completed consultation")

        if not displaced:
            return []

        ids = [row["id"] for row in displaced]
        now = datetime.now(UTC)

        await self.db.execute(
            update(appointments)
            .where(appointments.c.id.in_(ids))
            .values(
                status=AppointmentStatus.CANCELLED.value,
                notes=func.coalesce(appointments.c.notes, "") + PREEMPTION_NOTE,
                cancelled_at=now,
                updated_at=now,
            )
        )

        for row in displaced:
            await NotificationService.notify(
                self.db,
                row["patient_id"],
                "preempted",
                f"Your appointment on {appointment_date} at {appointment_time} with the doctor "
                "was cancelled due to an emergency booking.",
                {
                    "appointment_id": row["id"],
                    "doctor_id": doctor_id,
                    "appointment_date": appointment_date,
                    "appointment_time": appointment_time,
                },
            )

        logger.info(
            "appointment_preempted",
            doctor_id=str(doctor_id),
            appointment_date=appointment_date.isoformat(),
            appointment_time=appointment_time,
            displaced=[str(i) for i in ids],
        )

        return ids

    async def book(self, user: dict, data: AppointmentCreate) -> AppointmentResponse:
        """
        Admit a booking request.

        Scheduled bookings must fall inside the doctor's window and find the
        slot free; they start pending and unpaid. Emergency bookings skip the
        window check, preempt any occupants and start confirmed, paid and
        unlocked. Emails and meeting provisioning happen after the commit and
        never fail the booking.

        Args:
            user: Calling user (must be a patient)
            data: Booking request

        Returns:
            The created appointment

        Raises:
            ForbiddenException: If the caller is not a patient
            NotFoundException: If the doctor does not exist
            DoctorUnavailableException, OutsideHoursException, SlotTakenException:
                If a scheduled booking is not admitted, or an emergency booking
                targets a slot held by a completed consultation
        """
        if user["role"] != "patient":
            raise ForbiddenException("Only patients can create appointments")

        doctor = await DoctorService.get_doctor_row(self.db, data.doctor_id)
        if not doctor:
            raise NotFoundException("Doctor not found")

        emergency = data.appointment_type == AppointmentType.EMERGENCY

        if emergency:
            await self.preempt_slot(data.doctor_id, data.appointment_date, data.appointment_time)
        else:
            await self.check_scheduled_slot(
                data.doctor_id, data.appointment_date, data.appointment_time
            )

        amount = data.amount
        if amount is None:
            fee = doctor["emergency_fee"] if emergency else None
            amount = fee if fee else doctor["consultation_fee"]

        values = {
            "doctor_id": data.doctor_id,
            "patient_id": user["id"],
            "appointment_date": data.appointment_date,
            "appointment_time": data.appointment_time,
            "appointment_type": data.appointment_type.value,
            "amount": Decimal(str(amount)),
            "notes": data.notes,
            "status": (
                AppointmentStatus.CONFIRMED.value if emergency else AppointmentStatus.PENDING.value
            ),
            "payment_status": (
                PaymentStatus.PAID.value if emergency else PaymentStatus.PENDING.value
            ),
            "chat_unlocked": emergency,
            "video_unlocked": emergency,
        }
        if emergency:
            values["video_enabled_at"] = datetime.now(UTC)

        try:
            result = await self.db.execute(
                insert(appointments).values(**values).returning(appointments)
            )
            row = dict(result.mappings().one())
            await self.db.commit()
        except IntegrityError:
            # A concurrent booking won the slot between the check and the insert
            await self.db.rollback()
            logger.info(
                "appointment_slot_race_lost",
                doctor_id=str(data.doctor_id),
                appointment_date=data.appointment_date.isoformat(),
                appointment_time=data.appointment_time,
            )
            raise SlotTakenException()

        logger.info(
            "appointment_admitted",
            appointment_id=str(row["id"]),
            doctor_id=str(data.doctor_id),
            appointment_type=data.appointment_type.value,
        )

        await self._send_booking_emails(row)

        appointment_service = AppointmentService(self.db, self.email, self.video)
        if self.video is not None:
            row = await appointment_service.provision_meeting_best_effort(row)

        return AppointmentResponse.from_row(row)

    async def _send_booking_emails(self, row: dict) -> None:
        if self.email is None:
            return

        try:
            parties = await load_parties(self.db, row)
        except Exception as e:
            logger.warning("booking_email_lookup_failed", appointment_id=str(row["id"]), error=str(e))
            return

        if parties["patient_email"]:
            subject, text = email_messages.booking_patient(
                parties["patient_name"],
                parties["doctor_name"],
                row["appointment_date"],
                row["appointment_time"],
                row["appointment_type"],
                row["amount"],
            )
            await self.email.send(parties["patient_email"], subject, text)

        if parties["doctor_email"]:
            subject, text = email_messages.booking_doctor(
                parties["doctor_name"],
                parties["patient_name"],
                row["appointment_date"],
                row["appointment_time"],
                row["appointment_type"],
                row["amount"],
            )
            await self.email.send(parties["doctor_email"], subject, text)
