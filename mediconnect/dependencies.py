"""FastAPI dependencies."""

from typing import Annotated

import redis
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.core.exceptions import ForbiddenException, UnauthorizedException
from mediconnect.core.redis_client import CacheManager, get_redis_client
from mediconnect.core.tasks import EmailDispatcher, get_email_dispatcher
from mediconnect.core.video import VideoMeetingProvider, get_video_provider
from mediconnect.database import get_db
from mediconnect.services.session_service import SessionService

# Missing credentials are reported through UnauthorizedException, not HTTPBearer
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """
    Resolve the bearer token to the current user.

    Args:
        credentials: Bearer token credentials
        db: Database session

    Returns:
        User row as a dict

    Raises:
        UnauthorizedException: If the token is missing, invalid or superseded
        ForbiddenException: If the user is deactivated
    """
    if credentials is None:
        raise UnauthorizedException("Not authenticated")

    return await SessionService.validate(db, credentials.credentials)


def require_role(*roles: str):
    """Build a dependency that only admits users with one of ``roles``."""

    async def checker(current_user: Annotated[dict, Depends(get_current_user)]) -> dict:
        if current_user["role"] not in roles:
            raise ForbiddenException(f"{' or '.join(roles).capitalize()} access required")
        return current_user

    return checker


def get_cache_manager(
    redis_client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> CacheManager:
    """Get a cache manager over the shared Redis client."""
    return CacheManager(redis_client)


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
AdminUser = Annotated[dict, Depends(require_role("admin"))]
DoctorUser = Annotated[dict, Depends(require_role("doctor"))]
PatientUser = Annotated[dict, Depends(require_role("patient"))]
CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]
EmailDispatcherDep = Annotated[EmailDispatcher, Depends(get_email_dispatcher)]
VideoProviderDep = Annotated[VideoMeetingProvider, Depends(get_video_provider)]
