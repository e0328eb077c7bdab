"""
Settlement models for splitting a taxi fare among party members.
"""
from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, Enum as SQLEnum, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from tago.db.base import BaseModel
from tago.core.utils import utcnow
import enum


class SettlementStatus(str, enum.Enum):
    """Settlement status enumeration."""
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Settlement(BaseModel):
    """Fare split for one taxi party, collected into the host's account."""
    __tablename__ = "settlements"

    taxi_party_id = Column(Integer, ForeignKey("taxi_parties.id"), unique=True, nullable=False, index=True)
    host_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    total_fare = Column(Integer, nullable=False)
    bank_name = Column(String(30), nullable=False)
    account_number = Column(String(50), nullable=False)
    status = Column(SQLEnum(SettlementStatus), default=SettlementStatus.IN_PROGRESS, nullable=False)
    last_reminded_at = Column(DateTime, nullable=True)  # None until the first reminder

    # Relationships
    taxi_party = relationship("TaxiParty", back_populates="settlement")
    host = relationship("User")
    participants = relationship(
        "SettlementParticipant", back_populates="settlement",
        cascade="all, delete-orphan", order_by="SettlementParticipant.id"
    )

    def add_participant(self, participant: "SettlementParticipant"):
        self.participants.append(participant)

    def find_participant(self, user_id: int):
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant
        return None

    def is_member(self, user_id: int) -> bool:
        return self.host_id == user_id or self.find_participant(user_id) is not None

    def update_status_if_completed(self) -> bool:
        """
        Move to COMPLETED once every participant has paid.

        There is no way back to IN_PROGRESS. Returns True when this call
        performed the transition.
        """
        if self.status == SettlementStatus.COMPLETED:
            return False
        if self.participants and all(p.paid for p in self.participants):
            self.status = SettlementStatus.COMPLETED
            return True
        return False

    def uniform_amount(self):
        """The shared amount when every participant owes the same, else None."""
        amounts = {p.amount for p in self.participants}
        if len(amounts) != 1:
            return None
        return amounts.pop()


class SettlementParticipant(BaseModel):
    """A user's share of a settlement."""
    __tablename__ = "settlement_participants"
    __table_args__ = (
        UniqueConstraint("settlement_id", "user_id", name="uq_settlement_participant"),
    )

    settlement_id = Column(Integer, ForeignKey("settlements.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    paid = Column(Boolean, default=False, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    is_host = Column(Boolean, default=False, nullable=False)

    # Relationships
    settlement = relationship("Settlement", back_populates="participants")
    user = relationship("User", back_populates="settlement_rows")

    def mark_paid(self) -> bool:
        """Mark paid once; paid_at is never overwritten. Returns False if already paid."""
        if self.paid:
            return False
        self.paid = True
        self.paid_at = utcnow()
        return True
