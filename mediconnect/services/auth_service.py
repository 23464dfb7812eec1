"""Authentication service for password login and session lifecycle."""

from uuid import UUID

import structlog
from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.core.exceptions import (
    ConflictException,
    ForbiddenException,
    UnauthorizedException,
)
from mediconnect.core.security import get_password_hash, verify_password
from mediconnect.models.users import users
from mediconnect.schemas.auth import LoginRequest, LoginResponse, RegisterRequest
from mediconnect.schemas.users import UserResponse
from mediconnect.services.session_service import SessionService
from mediconnect.services.user_service import UserService

logger = structlog.get_logger(__name__)


class AuthService:
    """Registration, login and logout."""

    @staticmethod
    async def register(db: AsyncSession, data: RegisterRequest) -> LoginResponse:
        """
        Create an account and start its first session.

        Args:
            db: Database session
            data: Registration payload

        Returns:
            Session token and the new user

        Raises:
            ConflictException: If the email is already registered
        """
        email = data.email.lower()

        if await UserService.get_user_by_email(db, email):
            raise ConflictException("User already exists")

        query = (
            insert(users)
            .values(
                email=email,
                password_hash=get_password_hash(data.password),
                full_name=data.full_name,
                phone=data.phone or "",
                role=data.role.value,
            )
            .returning(users)
        )

        try:
            result = await db.execute(query)
        except IntegrityError:
            await db.rollback()
            raise ConflictException("User already exists")

        user = dict(result.mappings().one())
        token = await SessionService.issue_session(db, user["id"])
        await db.commit()

        logger.info("user_registered", user_id=str(user["id"]), role=user["role"])

        return LoginResponse(access_token=token, user=UserResponse.model_validate(user))

    @staticmethod
    async def login(db: AsyncSession, data: LoginRequest) -> LoginResponse:
        """
        Verify credentials and issue a session, invalidating any previous one.

        Raises:
            UnauthorizedException: If the email or password is wrong
            ForbiddenException: If the account is deactivated
        """
        user = await UserService.get_user_by_email(db, data.email)

        if not user or not verify_password(data.password, user["password_hash"]):
            logger.info("login_failed", email=data.email.lower())
            raise UnauthorizedException("Invalid credentials")

        if not user["is_active"]:
            raise ForbiddenException("User account is deactivated")

        token = await SessionService.issue_session(db, user["id"])
        await UserService.update_last_login(db, user["id"])
        await db.commit()

        return LoginResponse(access_token=token, user=UserResponse.model_validate(user))

    @staticmethod
    async def logout(db: AsyncSession, user_id: UUID) -> None:
        """End the caller's session."""
        await SessionService.invalidate(db, user_id)
