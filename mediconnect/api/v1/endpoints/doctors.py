"""Doctor directory endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from mediconnect.core.exceptions import NotFoundException
from mediconnect.dependencies import (
    CacheManagerDep,
    CurrentUser,
    DatabaseSession,
    DoctorUser,
)
from mediconnect.schemas.doctors import (
    DoctorCreate,
    DoctorListResponse,
    DoctorResponse,
    DoctorUpdate,
)
from mediconnect.services.doctor_service import DoctorService

router = APIRouter(prefix="/doctors")


@router.post(
    "",
    response_model=DoctorResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register my doctor profile",
)
async def create_doctor_profile(
    data: DoctorCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> DoctorResponse:
    """Create the caller's doctor profile. It stays hidden until an admin verifies it."""
    return await DoctorService(cache_manager).create_doctor(db, current_user, data)


@router.get(
    "",
    response_model=DoctorListResponse,
    status_code=status.HTTP_200_OK,
    summary="List verified doctors",
)
async def list_doctors(
    db: DatabaseSession,
    specialization: str | None = Query(None, description="Filter by specialization"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> DoctorListResponse:
    """Public directory of verified doctors."""
    items, total = await DoctorService.list_doctors(
        db,
        specialization=specialization,
        page=page,
        page_size=page_size,
    )
    return DoctorListResponse(total=total, page=page, page_size=page_size, items=items)


@router.get(
    "/me",
    response_model=DoctorResponse,
    status_code=status.HTTP_200_OK,
    summary="Get my doctor profile",
)
async def get_my_doctor_profile(
    current_user: DoctorUser,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> DoctorResponse:
    """Get the caller's doctor profile, including verification state."""
    doctor = await DoctorService.get_doctor_by_user_id(db, current_user["id"])
    if not doctor:
        raise NotFoundException("Doctor profile not found")
    return await DoctorService(cache_manager).get_doctor(db, doctor["id"])


@router.get(
    "/{doctor_id}",
    response_model=DoctorResponse,
    status_code=status.HTTP_200_OK,
    summary="Get doctor by ID",
)
async def get_doctor(
    doctor_id: UUID,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> DoctorResponse:
    """Get a doctor profile."""
    return await DoctorService(cache_manager).get_doctor(db, doctor_id)


@router.put(
    "/{doctor_id}",
    response_model=DoctorResponse,
    status_code=status.HTTP_200_OK,
    summary="Update my doctor profile",
)
async def update_doctor(
    doctor_id: UUID,
    data: DoctorUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> DoctorResponse:
    """Update a doctor profile owned by the caller."""
    return await DoctorService(cache_manager).update_doctor(db, doctor_id, current_user, data)
