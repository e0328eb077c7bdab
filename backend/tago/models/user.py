"""
User model for authentication and profile display.
"""
from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship
from tago.db.base import BaseModel


class User(BaseModel):
    """A student account. ``name`` is the display name used in notifications."""
    __tablename__ = "users"

    email = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(50), nullable=True)
    short_student_id = Column(String(10), nullable=True)  # e.g. "22" for class of 2022
    img_url = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    hosted_parties = relationship("TaxiParty", back_populates="host")
    notifications = relationship("Notification", back_populates="receiver", cascade="all, delete-orphan")
    settlement_rows = relationship("SettlementParticipant", back_populates="user")
