"""Idempotent payment application."""

from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.core.exceptions import ForbiddenException, NotFoundException
from mediconnect.core.tasks import EmailDispatcher
from mediconnect.models.appointments import appointments
from mediconnect.models.payments import payments
from mediconnect.schemas.appointments import (
    AppointmentResponse,
    AppointmentStatus,
    AppointmentType,
    PaymentStatus,
)
from mediconnect.schemas.payments import PaymentOutcome, PaymentResponse, PaymentResult
from mediconnect.services import email_messages
from mediconnect.services.appointment_service import TERMINAL_STATUSES, load_parties
from mediconnect.services.notification_service import NotificationService

logger = structlog.get_logger(__name__)


class PaymentService:
    """
    Applies gateway payment outcomes to appointments.

    Redelivery of an event is detected by ``gateway_payment_id`` or by the
    appointment already being paid; a duplicate returns the current state and
    triggers no notifications or emails.
    """

    def __init__(self, db: AsyncSession, email_dispatcher: EmailDispatcher | None = None):
        """Initialize service with database session and email dispatcher."""
        self.db = db
        self.email = email_dispatcher

    async def _load(self, appointment_id: UUID) -> dict:
        result = await self.db.execute(select(appointments).where(appointments.c.id == appointment_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Appointment not found")
        return dict(row)

    async def _find_payment(self, gateway_payment_id: str | None) -> dict | None:
        if not gateway_payment_id:
            return None
        result = await self.db.execute(
            select(payments).where(payments.c.gateway_payment_id == gateway_payment_id)
        )
        row = result.mappings().first()
        return dict(row) if row else None

    async def apply_payment(
        self,
        appointment_id: UUID,
        amount: Decimal,
        status: PaymentOutcome,
        gateway_payment_id: str | None = None,
        gateway_order_id: str | None = None,
        user: dict | None = None,
    ) -> PaymentResult:
        """
        Apply a payment outcome.

        Args:
            appointment_id: Appointment being paid for
            amount: Amount charged
            status: ``completed`` or ``failed``
            gateway_payment_id: Gateway's payment identifier, used for deduplication
            gateway_order_id: Gateway's order identifier
            user: Paying patient, or None for a gateway callback

        Returns:
            Stored payment, updated appointment and whether this was a duplicate

        Raises:
            NotFoundException: If the appointment does not exist
            ForbiddenException: If ``user`` is not the appointment's patient
        """
        appointment = await self._load(appointment_id)

        if user is not None and appointment["patient_id"] != user["id"]:
            raise ForbiddenException("Not authorized to pay for this appointment")

        existing = await self._find_payment(gateway_payment_id)
        if existing or appointment["payment_status"] == PaymentStatus.PAID.value:
            logger.info(
                "payment_already_applied",
                appointment_id=str(appointment_id),
                gateway_payment_id=gateway_payment_id,
            )
            return PaymentResult(
                payment=PaymentResponse.model_validate(existing) if existing else None,
                appointment=AppointmentResponse.from_row(appointment),
                already_applied=True,
            )

        completed = status == PaymentOutcome.COMPLETED

        payment_status = PaymentStatus.PAID if completed else PaymentStatus.FAILED
        values: dict = {"payment_status": payment_status.value}
        if completed:
            if appointment["status"] not in TERMINAL_STATUSES:
                values["status"] = AppointmentStatus.CONFIRMED.value
            if appointment["appointment_type"] == AppointmentType.EMERGENCY.value:
                values["chat_unlocked"] = True
                values["video_unlocked"] = True

        try:
            result = await self.db.execute(
                insert(payments)
                .values(
                    appointment_id=appointment_id,
                    patient_id=appointment["patient_id"],
                    amount=amount,
                    status=status.value,
                    gateway_order_id=gateway_order_id,
                    gateway_payment_id=gateway_payment_id,
                )
                .returning(payments)
            )
            payment = dict(result.mappings().one())

            result = await self.db.execute(
                update(appointments)
                .where(appointments.c.id == appointment_id)
                .values(**values)
                .returning(appointments)
            )
            row = dict(result.mappings().one())

            if completed:
                await NotificationService.notify(
                    self.db,
                    row["patient_id"],
                    "payment_completed",
                    f"Payment of {amount} received. Your appointment on "
                    f"{row['appointment_date']} at {row['appointment_time']} is confirmed.",
                    {"appointment_id": row["id"], "payment_id": payment["id"]},
                )

            await self.db.commit()
        except IntegrityError:
            # Concurrent delivery of the same gateway event
            await self.db.rollback()
            return PaymentResult(
                payment=None,
                appointment=AppointmentResponse.from_row(await self._load(appointment_id)),
                already_applied=True,
            )

        logger.info(
            "payment_applied",
            appointment_id=str(appointment_id),
            payment_id=str(payment["id"]),
            status=status.value,
        )

        if completed:
            await self._send_payment_emails(row, amount)

        return PaymentResult(
            payment=PaymentResponse.model_validate(payment),
            appointment=AppointmentResponse.from_row(row),
        )

    async def _send_payment_emails(self, row: dict, amount: Decimal) -> None:
        if self.email is None:
            return

        try:
            parties = await load_parties(self.db, row)
        except Exception as e:
            logger.warning("payment_email_lookup_failed", appointment_id=str(row["id"]), error=str(e))
            return

        if parties["patient_email"]:
            subject, text = email_messages.payment_patient(
                parties["patient_name"],
                parties["doctor_name"],
                row["appointment_date"],
                row["appointment_time"],
                amount,
            )
            await self.email.send(parties["patient_email"], subject, text)

        if parties["doctor_email"]:
            subject, text = email_messages.payment_doctor(
                parties["doctor_name"],
                parties["patient_name"],
                row["appointment_date"],
                row["appointment_time"],
                amount,
            )
            await self.email.send(parties["doctor_email"], subject, text)

    async def list_payments(self, user: dict) -> list[PaymentResponse]:
        """Payments made by the caller; all payments for admins."""
        stmt = select(payments).order_by(payments.c.created_at.desc())
        if user["role"] != "admin":
            stmt = stmt.where(payments.c.patient_id == user["id"])

        result = await self.db.execute(stmt)
        return [PaymentResponse.model_validate(dict(row)) for row in result.mappings().all()]
