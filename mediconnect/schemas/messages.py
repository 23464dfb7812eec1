"""Chat message schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class MessageType(str, Enum):
    """Message payload kind."""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


class MessageCreate(BaseModel):
    """Schema for sending a message on an appointment."""

    content: str = Field(default="", max_length=5000)
    file_url: str = Field(default="", max_length=1000)
    message_type: MessageType = MessageType.TEXT

    @model_validator(mode="after")
    def validate_not_empty(self) -> "MessageCreate":
        """Require either text or an attachment."""
        if not self.content.strip() and not self.file_url:
            raise ValueError("Message must have content or a file")
        return self


class MessageResponse(BaseModel):
    """Schema for a stored message."""

    id: UUID
    appointment_id: UUID
    sender_id: UUID
    sender_name: str | None = None
    content: str
    file_url: str
    message_type: MessageType
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class MarkReadResponse(BaseModel):
    """Number of messages marked read."""

    updated: int
