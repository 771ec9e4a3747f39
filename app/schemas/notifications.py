"""Notification schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class NotificationType(str, Enum):
    """Kinds of appointment e-mail the dispatcher sends."""

    BOOKING = "BOOKING"
    REMINDER = "REMINDER"
    RESCHEDULE = "RESCHEDULE"
    VIDEO_MEETING = "VIDEO_MEETING"


class NotificationResponse(BaseModel):
    """Schema for an inbox notification."""

    id: UUID
    user_id: UUID
    title: str
    message: str
    type: str
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """User inbox."""

    notifications: list[NotificationResponse]
    unread_count: int
