"""Models package - Import all models for SQLAlchemy registration."""
from tago.models.user import User
from tago.models.taxi_party import TaxiParty
from tago.models.chat import ChatRoom, ChatMessage, MessageType
from tago.models.notification import Notification, NotificationType, TargetType
from tago.models.settlement import Settlement, SettlementParticipant, SettlementStatus

__all__ = [
    "User",
    "TaxiParty",
    "ChatRoom",
    "ChatMessage",
    "MessageType",
    "Notification",
    "NotificationType",
    "TargetType",
    "Settlement",
    "SettlementParticipant",
    "SettlementStatus",
]
