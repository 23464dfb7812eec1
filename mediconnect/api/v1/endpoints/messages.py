"""Appointment chat endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from mediconnect.dependencies import CurrentUser, DatabaseSession
from mediconnect.schemas.messages import MarkReadResponse, MessageCreate, MessageResponse
from mediconnect.services.message_service import MessageService

router = APIRouter(prefix="/appointments/{appointment_id}/messages")


@router.get(
    "",
    response_model=list[MessageResponse],
    status_code=status.HTTP_200_OK,
    summary="Read the conversation",
)
async def list_messages(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> list[MessageResponse]:
    """Messages for the appointment, oldest first."""
    return await MessageService.list_messages(db, appointment_id, current_user)


@router.post(
    "",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
)
async def send_message(
    appointment_id: UUID,
    data: MessageCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> MessageResponse:
    """Send a message. Patients need chat to be unlocked."""
    return await MessageService.send_message(db, appointment_id, current_user, data)


@router.put(
    "/read",
    response_model=MarkReadResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark conversation read",
)
async def mark_messages_read(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> MarkReadResponse:
    """Mark the other party's messages read."""
    updated = await MessageService.mark_read(db, appointment_id, current_user)
    return MarkReadResponse(updated=updated)
