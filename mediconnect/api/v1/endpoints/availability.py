"""Doctor availability endpoints."""

from uuid import UUID

from fastapi import APIRouter, Path, status

from mediconnect.dependencies import CurrentUser, DatabaseSession
from mediconnect.schemas.availability import AvailabilityResponse, AvailabilityWindow
from mediconnect.services.availability_service import AvailabilityService

router = APIRouter(prefix="/availability")


@router.get(
    "/{doctor_id}",
    response_model=list[AvailabilityResponse],
    status_code=status.HTTP_200_OK,
    summary="Get a doctor's weekly schedule",
)
async def list_availability(doctor_id: UUID, db: DatabaseSession) -> list[AvailabilityResponse]:
    """List the doctor's windows, Sunday (0) first."""
    return await AvailabilityService.list_windows(db, doctor_id)


@router.put(
    "/{doctor_id}/{day_of_week}",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_200_OK,
    summary="Set open hours for one weekday",
)
async def upsert_availability(
    doctor_id: UUID,
    window: AvailabilityWindow,
    current_user: CurrentUser,
    db: DatabaseSession,
    day_of_week: int = Path(..., ge=0, le=6, description="0 = Sunday"),
) -> AvailabilityResponse:
    """
    Create or replace the window for a weekday.

    Only the doctor who owns the profile may edit it.
    """
    return await AvailabilityService.upsert_window(db, current_user, doctor_id, day_of_week, window)
