"""Appointment chat."""

from uuid import UUID

import structlog
from sqlalchemy import and_, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.core.exceptions import ForbiddenException, NotFoundException
from mediconnect.models.appointments import appointments
from mediconnect.models.messages import messages
from mediconnect.models.users import users
from mediconnect.schemas.messages import MessageCreate, MessageResponse
from mediconnect.services.appointment_service import load_parties
from mediconnect.services.doctor_service import DoctorService
from mediconnect.services.notification_service import NotificationService

logger = structlog.get_logger(__name__)


class MessageService:
    """Per-appointment chat gated by ``chat_unlocked``."""

    @staticmethod
    async def _load_as_party(db: AsyncSession, appointment_id: UUID, user: dict) -> tuple[dict, bool]:
        """
        Load an appointment the caller takes part in.

        Returns:
            The appointment row and whether the caller is its doctor
        """
        result = await db.execute(select(appointments).where(appointments.c.id == appointment_id))
        appointment = result.mappings().first()
        if not appointment:
            raise NotFoundException("Appointment not found")

        if appointment["patient_id"] == user["id"]:
            return dict(appointment), False

        doctor = await DoctorService.get_doctor_by_user_id(db, user["id"])
        if doctor and doctor["id"] == appointment["doctor_id"]:
            return dict(appointment), True

        raise ForbiddenException("Access denied to this appointment")

    @staticmethod
    async def list_messages(
        db: AsyncSession,
        appointment_id: UUID,
        user: dict,
    ) -> list[MessageResponse]:
        """Conversation for an appointment, oldest first. Readable even while chat is locked."""
        await MessageService._load_as_party(db, appointment_id, user)

        result = await db.execute(
            select(messages, users.c.full_name.label("sender_name"))
            .join(users, messages.c.sender_id == users.c.id)
            .where(messages.c.appointment_id == appointment_id)
            .order_by(messages.c.created_at)
        )
        return [MessageResponse.model_validate(dict(row)) for row in result.mappings().all()]

    @staticmethod
    async def send_message(
        db: AsyncSession,
        appointment_id: UUID,
        user: dict,
        data: MessageCreate,
    ) -> MessageResponse:
        """
        Post a message and notify the other party.

        Patients may only send while chat is unlocked; the doctor may always send.

        Raises:
            ForbiddenException: If the caller is not a party, or is the patient and chat is locked
        """
        appointment, is_doctor = await MessageService._load_as_party(db, appointment_id, user)

        if not is_doctor and not appointment["chat_unlocked"]:
            raise ForbiddenException(
                "Chat is disabled by the doctor. You can read messages but cannot send new messages."
            )

        result = await db.execute(
            insert(messages)
            .values(
                appointment_id=appointment_id,
                sender_id=user["id"],
                content=data.content,
                file_url=data.file_url,
                message_type=data.message_type.value,
            )
            .returning(messages)
        )
        row = dict(result.mappings().one())

        if is_doctor:
            recipient_id = appointment["patient_id"]
        else:
            recipient_id = (await load_parties(db, appointment))["doctor_user_id"]

        if recipient_id is not None:
            await NotificationService.notify(
                db,
                recipient_id,
                "message",
                f"New message from {user['full_name']}",
                {"appointment_id": appointment_id, "message_id": row["id"]},
            )

        await db.commit()

        logger.info("message_sent", appointment_id=str(appointment_id), message_id=str(row["id"]))

        return MessageResponse.model_validate({**row, "sender_name": user["full_name"]})

    @staticmethod
    async def mark_read(db: AsyncSession, appointment_id: UUID, user: dict) -> int:
        """Mark the other party's messages in a conversation read."""
        await MessageService._load_as_party(db, appointment_id, user)

        result = await db.execute(
            update(messages)
            .where(
                and_(
                    messages.c.appointment_id == appointment_id,
                    messages.c.sender_id != user["id"],
                    messages.c.is_read.is_(False),
                )
            )
            .values(is_read=True)
        )
        await db.commit()
        return result.rowcount or 0
