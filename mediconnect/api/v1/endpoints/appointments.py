"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from mediconnect.dependencies import (
    CurrentUser,
    DatabaseSession,
    EmailDispatcherDep,
    VideoProviderDep,
)
from mediconnect.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    MarkDoneResponse,
    PermissionsUpdate,
)
from mediconnect.services.appointment_service import AppointmentService
from mediconnect.services.booking_service import BookingService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
    email: EmailDispatcherDep,
    video: VideoProviderDep,
) -> AppointmentResponse:
    """
    Book a slot with a doctor.

    Scheduled bookings are rejected with ``doctor_unavailable``,
    ``outside_hours`` or ``slot_taken``. Emergency bookings always succeed
    and cancel any existing booking in the slot.
    """
    return await BookingService(db, email, video).book(current_user, data)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    current_user: CurrentUser,
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    appointment_date: date | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """List the caller's appointments as patient, doctor or admin."""
    filters = AppointmentFilters(
        status=status_filter,
        appointment_date=appointment_date,
        page=page,
        page_size=page_size,
    )
    return await AppointmentService(db).list_appointments(current_user, filters)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Get an appointment the caller takes part in."""
    return await AppointmentService(db).get_appointment(appointment_id, current_user)


@router.put(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Confirm or cancel an appointment",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
    email: EmailDispatcherDep,
) -> AppointmentResponse:
    """
    Confirm (doctor) or cancel (patient or doctor).

    Confirming unlocks chat and video. Illegal transitions answer 409.
    """
    return await AppointmentService(db, email).update_status(appointment_id, current_user, data)


@router.put(
    "/{appointment_id}/permissions",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Set chat and video permissions",
)
async def set_permissions(
    appointment_id: UUID,
    data: PermissionsUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
    email: EmailDispatcherDep,
) -> AppointmentResponse:
    """Doctor enables or disables chat and video for the patient."""
    return await AppointmentService(db, email).set_permissions(appointment_id, current_user, data)


@router.patch(
    "/{appointment_id}/chat/toggle",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Toggle chat",
)
async def toggle_chat(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Flip the chat permission."""
    return await AppointmentService(db).toggle_chat(appointment_id, current_user)


@router.patch(
    "/{appointment_id}/doctor-join-call",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Doctor joined the video call",
)
async def doctor_join_call(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Mark the doctor as present in the call."""
    return await AppointmentService(db).doctor_join_call(appointment_id, current_user)


@router.patch(
    "/{appointment_id}/doctor-leave-call",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Doctor left the video call",
)
async def doctor_leave_call(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Mark the doctor as no longer in the call."""
    return await AppointmentService(db).doctor_leave_call(appointment_id, current_user)


@router.patch(
    "/{appointment_id}/refresh-meeting",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Re-create the video meeting",
)
async def refresh_meeting(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    video: VideoProviderDep,
) -> AppointmentResponse:
    """Provision a fresh meeting with the configured provider."""
    return await AppointmentService(db, video_provider=video).refresh_meeting(
        appointment_id, current_user
    )


@router.post(
    "/{appointment_id}/mark-done",
    response_model=MarkDoneResponse,
    status_code=status.HTTP_200_OK,
    summary="Complete a consultation",
)
async def mark_done(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    email: EmailDispatcherDep,
) -> MarkDoneResponse:
    """
    Doctor marks a confirmed consultation completed.

    Chat is locked and the patient receives the completion notice with the
    latest prescription.
    """
    return await AppointmentService(db, email).mark_done(appointment_id, current_user)
