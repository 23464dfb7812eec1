"""Admin-only endpoints for doctor verification and maintenance."""

from uuid import UUID

from fastapi import APIRouter, Query, status
from pydantic import BaseModel

from mediconnect.dependencies import (
    AdminUser,
    CacheManagerDep,
    DatabaseSession,
    EmailDispatcherDep,
)
from mediconnect.schemas.doctors import (
    DoctorListResponse,
    DoctorRejectRequest,
    DoctorResponse,
    VerificationStatus,
)
from mediconnect.schemas.users import UserResponse
from mediconnect.services.doctor_service import DoctorService
from mediconnect.services.sweep_service import cancel_stale_appointments
from mediconnect.services.user_service import UserService

router = APIRouter(prefix="/admin")


class SweepResponse(BaseModel):
    """Result of a manual stale-booking sweep."""

    cancelled: int


@router.get(
    "/doctors",
    response_model=DoctorListResponse,
    summary="List all doctors (admin only)",
)
async def list_all_doctors(
    admin_user: AdminUser,
    db: DatabaseSession,
    verification_status: VerificationStatus | None = Query(
        None, description="Filter by verification status"
    ),
    specialization: str | None = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
) -> DoctorListResponse:
    """List doctors in any verification state."""
    items, total = await DoctorService.list_doctors(
        db,
        specialization=specialization,
        verification_status=verification_status,
        page=page,
        page_size=page_size,
    )
    return DoctorListResponse(total=total, page=page, page_size=page_size, items=items)


@router.post(
    "/doctors/{doctor_id}/verify",
    response_model=DoctorResponse,
    summary="Approve a doctor (admin only)",
)
async def verify_doctor(
    doctor_id: UUID,
    admin_user: AdminUser,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
    email: EmailDispatcherDep,
) -> DoctorResponse:
    """Approve a doctor application and notify the doctor."""
    return await DoctorService(cache_manager, email).verify_doctor(db, doctor_id)


@router.post(
    "/doctors/{doctor_id}/reject",
    response_model=DoctorResponse,
    summary="Reject a doctor (admin only)",
)
async def reject_doctor(
    doctor_id: UUID,
    data: DoctorRejectRequest,
    admin_user: AdminUser,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
    email: EmailDispatcherDep,
) -> DoctorResponse:
    """Reject a doctor application, recording the reason in its history."""
    return await DoctorService(cache_manager, email).reject_doctor(db, doctor_id, data.reason)


@router.delete(
    "/doctors/{doctor_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a doctor and their account (admin only)",
)
async def delete_doctor(
    doctor_id: UUID,
    admin_user: AdminUser,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> None:
    """Remove the doctor profile and the linked user account."""
    await DoctorService(cache_manager).delete_doctor(db, doctor_id)


@router.post(
    "/users/{user_id}/deactivate",
    response_model=UserResponse,
    summary="Deactivate a user (admin only)",
)
async def deactivate_user(
    user_id: UUID,
    admin_user: AdminUser,
    db: DatabaseSession,
) -> UserResponse:
    """Block a user from signing in. Their existing session stops working too."""
    user = await UserService.deactivate_user(db, user_id)
    return UserResponse.model_validate(user)


@router.post(
    "/appointments/auto-cancel",
    response_model=SweepResponse,
    summary="Run the stale-booking sweep now (admin only)",
)
async def run_stale_sweep(admin_user: AdminUser, db: DatabaseSession) -> SweepResponse:
    """Cancel pending, unpaid bookings older than the configured threshold."""
    return SweepResponse(cancelled=await cancel_stale_appointments(db))
