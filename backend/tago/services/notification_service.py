"""
Notification service: the notification store queries and the dispatcher
that turns domain events into notifications.

Every dispatch persists the notification row first and only then tries a
real-time push. The row is the source of truth; a failed push is logged and
the client picks the notification up on its next poll.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from tago.core.exceptions import NotFoundError, PermissionDeniedError
from tago.models.notification import Notification, NotificationType, TargetType
from tago.models.user import User
from tago.schemas.notification import NotificationResponse
from tago.services.connection_registry import ConnectionRegistry

logger = logging.getLogger(__name__)

NOTIFICATION_EVENT = "notification"


# ==================== Queries ====================

def get_notifications(
    receiver_id: int,
    page: int,
    size: int,
    db: Session
) -> Tuple[List[Notification], int]:
    """Page of a user's notifications, newest first, and the total count."""
    query = db.query(Notification).filter(Notification.receiver_id == receiver_id)
    total = query.count()
    items = query.order_by(
        Notification.created_at.desc(),
        Notification.id.desc()
    ).offset(page * size).limit(size).all()
    return items, total


def get_unread_count(receiver_id: int, db: Session) -> int:
    """Number of unread notifications (bell badge)."""
    return db.query(Notification).filter(
        Notification.receiver_id == receiver_id,
        Notification.is_read.is_(False)
    ).count()


def mark_as_read(notification_id: int, user_id: int, db: Session) -> Notification:
    """Mark a notification read. Only its receiver may do so; repeats are no-ops."""
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if not notification:
        raise NotFoundError("Notification not found")

    if notification.receiver_id != user_id:
        raise PermissionDeniedError("Only the receiver can mark this notification as read")

    if notification.mark_as_read():
        db.commit()
        db.refresh(notification)
        logger.info(f"Notification marked as read: notification_id={notification_id}, user_id={user_id}")

    return notification


# ==================== Dispatch ====================
# Each function flushes the new row into the caller's transaction; the
# caller owns the commit.

def send_settlement_request(
    receiver_id: int,
    settlement_id: int,
    db: Session,
    registry: ConnectionRegistry
) -> Notification:
    notification = _dispatch(
        receiver_id,
        title="정산요청이 들어왔어요.",
        body="빠른 시일 내에 정산해 주세요.",
        notification_type=NotificationType.SETTLEMENT_REQUEST,
        target_type=TargetType.SETTLEMENT,
        target_id=settlement_id,
        db=db,
        registry=registry,
    )
    logger.info(f"Settlement request notification created: receiver_id={receiver_id}, settlement_id={settlement_id}")
    return notification


def send_settlement_remind(
    receiver_id: int,
    settlement_id: int,
    requester_name: str,
    db: Session,
    registry: ConnectionRegistry
) -> Notification:
    notification = _dispatch(
        receiver_id,
        title=f"{requester_name}님이 정산을 재촉했어요.",
        body="프로필에 미정산 이력이 남아요. 정산을 서둘러 주세요.",
        notification_type=NotificationType.SETTLEMENT_REMIND,
        target_type=TargetType.SETTLEMENT,
        target_id=settlement_id,
        db=db,
        registry=registry,
    )
    logger.info(f"Settlement reminder notification created: receiver_id={receiver_id}, settlement_id={settlement_id}")
    return notification


def send_review_arrived(
    receiver_id: int,
    review_id: int,
    db: Session,
    registry: ConnectionRegistry
) -> Notification:
    return _dispatch(
        receiver_id,
        title="후기가 도착했어요.",
        body="어떤 후기가 도착했는지 확인해 보세요.",
        notification_type=NotificationType.REVIEW_ARRIVED,
        target_type=TargetType.REVIEW,
        target_id=review_id,
        db=db,
        registry=registry,
    )


def send_taxi_participation_request(
    receiver_id: int,
    taxi_party_id: int,
    requester_name: str,
    db: Session,
    registry: ConnectionRegistry
) -> Notification:
    """Tell the host that someone asked to join their taxi party."""
    return _dispatch(
        receiver_id,
        title="택시팟 참여 요청이 왔어요.",
        body=f"{requester_name}님이 같이 타기를 요청했어요.",
        notification_type=NotificationType.TAXI_PARTICIPATION_REQUEST,
        target_type=TargetType.TAXI_PARTY,
        target_id=taxi_party_id,
        db=db,
        registry=registry,
    )


def send_taxi_participation_accepted(
    receiver_id: int,
    room_id: int,
    host_name: str,
    db: Session,
    registry: ConnectionRegistry
) -> Notification:
    """Tell a requester they were accepted; clicking opens the chat room."""
    return _dispatch(
        receiver_id,
        title=f"{host_name}님이 택시팟 참여를 수락했어요.",
        body="어서 채팅방으로 들어가 소통해 보세요.",
        notification_type=NotificationType.TAXI_PARTICIPATION_ACCEPTED,
        target_type=TargetType.TAXI_ROOM,
        target_id=room_id,
        db=db,
        registry=registry,
    )


def _dispatch(
    receiver_id: int,
    title: str,
    body: str,
    notification_type: NotificationType,
    target_type: TargetType,
    target_id: Optional[int],
    db: Session,
    registry: ConnectionRegistry
) -> Notification:
    receiver = db.query(User).filter(User.id == receiver_id).first()
    if not receiver:
        raise NotFoundError(f"User not found: id={receiver_id}")

    notification = Notification(
        receiver_id=receiver.id,
        title=title,
        body=body,
        type=notification_type,
        target_type=target_type.value,
        target_id=target_id,
        is_read=False
    )
    db.add(notification)
    db.flush()

    push_notification(notification, registry)
    return notification


def push_notification(notification: Notification, registry: ConnectionRegistry) -> bool:
    """Best-effort live delivery. Never raises."""
    try:
        payload = NotificationResponse.model_validate(notification).model_dump(mode="json")
        return registry.send(notification.receiver_id, NOTIFICATION_EVENT, payload)
    except Exception as e:
        logger.error(
            f"Notification push failed (notification kept): notification_id={notification.id}, "
            f"receiver_id={notification.receiver_id}, error={e}",
            exc_info=True
        )
        return False
