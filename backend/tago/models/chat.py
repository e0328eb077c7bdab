"""
Group chat models for a taxi party.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Enum as SQLEnum, ForeignKey
from sqlalchemy.orm import relationship
from tago.db.base import BaseModel
from tago.core.utils import utcnow
import enum


class MessageType(str, enum.Enum):
    """Chat message type enumeration."""
    TEXT = "TEXT"
    SYSTEM = "SYSTEM"


class ChatRoom(BaseModel):
    """One chat room per taxi party."""
    __tablename__ = "chat_rooms"

    taxi_party_id = Column(Integer, ForeignKey("taxi_parties.id"), unique=True, nullable=False, index=True)
    is_closed = Column(Boolean, default=False, nullable=False)
    closed_at = Column(DateTime, nullable=True)
    last_message = Column(String(255), nullable=True)  # Preview shown in the room list
    last_message_at = Column(DateTime, nullable=True)

    # Relationships
    taxi_party = relationship("TaxiParty", back_populates="chat_room")
    messages = relationship(
        "ChatMessage", back_populates="chat_room",
        cascade="all, delete-orphan", order_by="ChatMessage.id"
    )

    def close(self):
        if not self.is_closed:
            self.is_closed = True
            self.closed_at = utcnow()

    def update_message(self, content: str, sent_at=None):
        """Refresh the last-message summary. Blank content is ignored."""
        if not content or not content.strip():
            return
        self.last_message = content[:255]
        self.last_message_at = sent_at or utcnow()


class ChatMessage(BaseModel):
    """A message posted into a chat room."""
    __tablename__ = "chat_messages"

    chat_room_id = Column(Integer, ForeignKey("chat_rooms.id"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    message_type = Column(SQLEnum(MessageType), default=MessageType.TEXT, nullable=False)
    content = Column(String(500), nullable=False)
    sent_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    chat_room = relationship("ChatRoom", back_populates="messages")
    sender = relationship("User")
