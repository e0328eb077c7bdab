"""
Pydantic schemas for Notification entity.
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from tago.models.notification import NotificationType


class NotificationResponse(BaseModel):
    """Notification card as rendered by the client; also the SSE payload."""
    id: int
    title: str
    body: Optional[str] = None
    type: NotificationType
    target_type: Optional[str] = None
    target_id: Optional[int] = None
    read: bool = Field(validation_alias="is_read")
    created_at: datetime
    read_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        populate_by_name = True


class NotificationPage(BaseModel):
    """Page of notifications, newest first."""
    items: List[NotificationResponse]
    page: int
    size: int
    total: int
    has_next: bool


class UnreadCountResponse(BaseModel):
    """Badge count for the bell icon."""
    count: int
