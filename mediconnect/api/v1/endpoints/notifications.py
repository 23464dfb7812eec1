"""Notification inbox endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from mediconnect.dependencies import CurrentUser, DatabaseSession
from mediconnect.schemas.notifications import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationRecord,
    UnreadCountResponse,
)
from mediconnect.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications")


@router.get(
    "",
    response_model=NotificationListResponse,
    status_code=status.HTTP_200_OK,
    summary="Get my notifications",
)
async def list_my_notifications(
    current_user: CurrentUser,
    db: DatabaseSession,
    unread_only: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> NotificationListResponse:
    """
    Get the caller's inbox, newest first.

    Args:
        current_user: Authenticated user
        db: Database session
        unread_only: Only return unread entries
        page: Page number
        page_size: Items per page

    Returns:
        Paginated notifications
    """
    return await NotificationService.list_notifications(
        db, current_user["id"], page=page, page_size=page_size, unread_only=unread_only
    )


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    status_code=status.HTTP_200_OK,
    summary="Count unread notifications",
)
async def unread_count(current_user: CurrentUser, db: DatabaseSession) -> UnreadCountResponse:
    """Number of unread inbox entries."""
    count = await NotificationService.unread_count(db, current_user["id"])
    return UnreadCountResponse(count=count)


@router.put(
    "/mark-all-read",
    response_model=MarkAllReadResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark all notifications read",
)
async def mark_all_read(current_user: CurrentUser, db: DatabaseSession) -> MarkAllReadResponse:
    """Mark every unread entry read."""
    modified = await NotificationService.mark_all_read(db, current_user["id"])
    return MarkAllReadResponse(modified_count=modified)


@router.put(
    "/{notification_id}/read",
    response_model=NotificationRecord,
    status_code=status.HTTP_200_OK,
    summary="Mark notification as read",
)
async def mark_notification_read(
    notification_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> NotificationRecord:
    """Mark one of the caller's notifications read."""
    return await NotificationService.mark_read(db, notification_id, current_user["id"])
