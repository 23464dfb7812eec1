"""Notification inbox schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class NotificationRecord(BaseModel):
    """Schema for one inbox entry."""

    id: UUID
    user_id: UUID
    notification_type: str
    message: str
    data: dict[str, Any] | None = None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Paginated inbox."""

    total: int
    page: int
    page_size: int
    items: list[NotificationRecord]


class UnreadCountResponse(BaseModel):
    """Unread inbox counter."""

    count: int


class MarkAllReadResponse(BaseModel):
    """Result of marking the whole inbox read."""

    modified_count: int
