"""
Chat service for messages the server posts into a party's chat room.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from tago.core.utils import utcnow
from tago.models.chat import ChatRoom, ChatMessage, MessageType

logger = logging.getLogger(__name__)


def get_room_for_party(taxi_party_id: int, db: Session) -> Optional[ChatRoom]:
    return db.query(ChatRoom).filter(ChatRoom.taxi_party_id == taxi_party_id).first()


def append_system_message(
    taxi_party_id: int,
    sender_id: int,
    content: str,
    db: Session
) -> Optional[ChatMessage]:
    """
    Post a SYSTEM message into the party's chat room and refresh the room's
    last-message summary.

    Returns None without writing anything when the room is absent or closed.
    """
    chat_room = get_room_for_party(taxi_party_id, db)
    if chat_room is None:
        logger.debug(f"No chat room for taxi party {taxi_party_id}, message skipped")
        return None
    if chat_room.is_closed:
        logger.debug(f"Chat room {chat_room.id} is closed, message skipped")
        return None

    now = utcnow()
    message = ChatMessage(
        chat_room_id=chat_room.id,
        sender_id=sender_id,
        message_type=MessageType.SYSTEM,
        content=content,
        sent_at=now
    )
    db.add(message)
    chat_room.update_message(content, now)
    db.flush()

    return message
