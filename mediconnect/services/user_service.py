"""User service for business logic."""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.core.exceptions import NotFoundException
from mediconnect.core.security import get_password_hash
from mediconnect.models.users import users
from mediconnect.schemas.users import UserUpdate


class UserService:
    """Service for user operations."""

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: UUID) -> dict | None:
        """Get user by internal ID."""
        query = select(users).where(users.c.id == user_id)
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> dict | None:
        """Get user by email (case-insensitive)."""
        query = select(users).where(users.c.email == email.lower())
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    @staticmethod
    async def update_user(db: AsyncSession, user_id: UUID, user_data: UserUpdate) -> dict:
        """
        Update the user's own profile.

        A supplied ``password`` is hashed before it is stored.

        Raises:
            NotFoundException: If the user does not exist
        """
        update_data = user_data.model_dump(exclude_unset=True, exclude_none=True)

        password = update_data.pop("password", None)
        if password:
            update_data["password_hash"] = get_password_hash(password)

        if not update_data:
            user = await UserService.get_user_by_id(db, user_id)
            if not user:
                raise NotFoundException("User not found")
            return user

        update_data["updated_at"] = datetime.now(UTC)

        query = update(users).where(users.c.id == user_id).values(**update_data).returning(users)
        result = await db.execute(query)
        await db.commit()

        user = result.mappings().first()
        if not user:
            raise NotFoundException("User not found")

        return dict(user)

    @staticmethod
    async def update_last_login(db: AsyncSession, user_id: UUID) -> None:
        """Update user's last login timestamp. Does not commit."""
        query = update(users).where(users.c.id == user_id).values(last_login_at=datetime.now(UTC))
        await db.execute(query)

    @staticmethod
    async def deactivate_user(db: AsyncSession, user_id: UUID) -> dict:
        """Deactivate a user account (admin)."""
        query = (
            update(users)
            .where(users.c.id == user_id)
            .values(is_active=False, updated_at=datetime.now(UTC))
            .returning(users)
        )
        result = await db.execute(query)
        await db.commit()

        user = result.mappings().first()
        if not user:
            raise NotFoundException("User not found")

        return dict(user)
