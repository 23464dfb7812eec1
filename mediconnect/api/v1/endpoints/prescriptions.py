"""Prescription endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from mediconnect.dependencies import CurrentUser, DatabaseSession
from mediconnect.schemas.prescriptions import PrescriptionCreate, PrescriptionResponse
from mediconnect.services.prescription_service import PrescriptionService

router = APIRouter(prefix="/prescriptions")


@router.post(
    "",
    response_model=PrescriptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Write a prescription",
)
async def create_prescription(
    data: PrescriptionCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> PrescriptionResponse:
    """Doctor writes a prescription for one of their appointments."""
    return await PrescriptionService.create_prescription(db, current_user, data)


@router.get(
    "",
    response_model=list[PrescriptionResponse],
    status_code=status.HTTP_200_OK,
    summary="List my prescriptions",
)
async def list_prescriptions(
    current_user: CurrentUser,
    db: DatabaseSession,
) -> list[PrescriptionResponse]:
    """Prescriptions the caller received or wrote."""
    return await PrescriptionService.list_for_user(db, current_user)


@router.get(
    "/appointment/{appointment_id}",
    response_model=list[PrescriptionResponse],
    status_code=status.HTTP_200_OK,
    summary="Prescriptions for an appointment",
)
async def list_appointment_prescriptions(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> list[PrescriptionResponse]:
    """Prescriptions attached to an appointment, newest first."""
    return await PrescriptionService.list_for_appointment(db, current_user, appointment_id)
