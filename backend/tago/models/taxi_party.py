"""
Taxi party model: a posted ride-share request.
"""
from sqlalchemy import Column, String, Integer, ForeignKey
from sqlalchemy.orm import relationship
from tago.db.base import BaseModel


class TaxiParty(BaseModel):
    """A ride-share request organised by its host."""
    __tablename__ = "taxi_parties"

    host_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    departure = Column(String(100), nullable=False)
    destination = Column(String(100), nullable=False)

    # Relationships
    host = relationship("User", back_populates="hosted_parties")
    chat_room = relationship("ChatRoom", back_populates="taxi_party", uselist=False, cascade="all, delete-orphan")
    settlement = relationship("Settlement", back_populates="taxi_party", uselist=False)
