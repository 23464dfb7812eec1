"""User profile endpoints."""

from fastapi import APIRouter, status

from mediconnect.dependencies import CurrentUser, DatabaseSession
from mediconnect.schemas.users import UserResponse, UserUpdate
from mediconnect.services.user_service import UserService

router = APIRouter(prefix="/users")


@router.get(
    "/me",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Get my profile",
)
async def get_my_profile(current_user: CurrentUser) -> UserResponse:
    """Get the authenticated user's profile."""
    return UserResponse.model_validate(current_user)


@router.put(
    "/me",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Update my profile",
)
async def update_my_profile(
    data: UserUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> UserResponse:
    """
    Update the authenticated user's profile.

    Only provided fields are changed. Role and email cannot be changed here.
    """
    user = await UserService.update_user(db, current_user["id"], data)
    return UserResponse.model_validate(user)
