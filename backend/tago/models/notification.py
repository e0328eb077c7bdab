"""
Notification model backing the in-app notification center.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Enum as SQLEnum, ForeignKey
from sqlalchemy.orm import relationship
from tago.db.base import BaseModel
from tago.core.utils import utcnow
import enum


class NotificationType(str, enum.Enum):
    """Notification type enumeration."""
    SETTLEMENT_REQUEST = "SETTLEMENT_REQUEST"
    SETTLEMENT_REMIND = "SETTLEMENT_REMIND"
    REVIEW_ARRIVED = "REVIEW_ARRIVED"
    TAXI_PARTICIPATION_REQUEST = "TAXI_PARTICIPATION_REQUEST"
    TAXI_PARTICIPATION_ACCEPTED = "TAXI_PARTICIPATION_ACCEPTED"


class TargetType(str, enum.Enum):
    """Screen the client opens when the notification is clicked."""
    SETTLEMENT = "SETTLEMENT"
    REVIEW = "REVIEW"
    TAXI_PARTY = "TAXI_PARTY"
    TAXI_ROOM = "TAXI_ROOM"


class Notification(BaseModel):
    """A notification addressed to one user."""
    __tablename__ = "notifications"

    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    body = Column(String(500), nullable=True)
    type = Column(SQLEnum(NotificationType), nullable=False)
    target_type = Column(String(50), nullable=True)
    target_id = Column(Integer, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)

    # Relationships
    receiver = relationship("User", back_populates="notifications")

    def mark_as_read(self) -> bool:
        """Mark read once. Returns False when it was already read."""
        if self.is_read:
            return False
        self.is_read = True
        self.read_at = utcnow()
        return True
