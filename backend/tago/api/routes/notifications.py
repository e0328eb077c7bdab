"""
Notification routes: notification center, unread badge, live stream and read marking.
"""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from tago.core.config import settings
from tago.db.session import get_db
from tago.models.user import User
from tago.schemas.notification import NotificationPage, NotificationResponse, UnreadCountResponse
from tago.api.dependencies import get_current_user, get_stream_user, get_connection_registry
from tago.services import notification_service
from tago.services.connection_registry import ConnectionRegistry

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationPage)
def list_notifications(
    page: int = Query(0, ge=0, description="Zero-based page index"),
    size: int = Query(settings.NOTIFICATION_PAGE_SIZE, ge=1, le=settings.NOTIFICATION_MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the current user's notifications, newest first."""
    items, total = notification_service.get_notifications(current_user.id, page, size, db)
    return NotificationPage(
        items=[NotificationResponse.model_validate(n) for n in items],
        page=page,
        size=size,
        total=total,
        has_next=(page + 1) * size < total
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Unread notification count for the bell badge."""
    return UnreadCountResponse(count=notification_service.get_unread_count(current_user.id, db))


@router.get("/stream")
async def stream_notifications(
    current_user: User = Depends(get_stream_user),
    registry: ConnectionRegistry = Depends(get_connection_registry)
):
    """
    Open the live notification stream (Server-Sent Events).

    Replaces any stream the user already had open. New notifications arrive
    as ``notification`` events; a ``connect`` event confirms the connection.
    """
    channel = registry.create(current_user.id)
    channel.send("connect", "SSE connection established")
    return StreamingResponse(
        channel.stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
    )


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_as_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Mark one of the current user's notifications as read."""
    notification = notification_service.mark_as_read(notification_id, current_user.id, db)
    return notification
