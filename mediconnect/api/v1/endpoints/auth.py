"""Authentication endpoints."""

from fastapi import APIRouter, status

from mediconnect.dependencies import CurrentUser, DatabaseSession
from mediconnect.schemas.auth import LoginRequest, LoginResponse, RegisterRequest
from mediconnect.schemas.users import UserResponse
from mediconnect.services.auth_service import AuthService

router = APIRouter()


@router.post(
    "/register",
    response_model=LoginResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new account",
)
async def register(data: RegisterRequest, db: DatabaseSession) -> LoginResponse:
    """
    Create a patient or doctor account and sign it in.

    Doctors must additionally create their profile with ``POST /doctors``
    and wait for admin verification.
    """
    return await AuthService.register(db, data)


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Log in with email and password",
)
async def login(data: LoginRequest, db: DatabaseSession) -> LoginResponse:
    """
    Log in and receive a session token.

    Logging in invalidates every token issued by an earlier login of the
    same account.
    """
    return await AuthService.login(db, data)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Log out",
)
async def logout(current_user: CurrentUser, db: DatabaseSession) -> None:
    """End the current session."""
    await AuthService.logout(db, current_user["id"])


@router.get(
    "/me",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Get current user",
)
async def get_me(current_user: CurrentUser) -> UserResponse:
    """Return the authenticated user."""
    return UserResponse.model_validate(current_user)
