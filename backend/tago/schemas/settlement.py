"""
Pydantic schemas for Settlement entity.
"""
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from tago.models.settlement import SettlementStatus


class ParticipantShare(BaseModel):
    """Amount one user owes, as confirmed by the host."""
    user_id: int
    amount: int


class SettlementCreate(BaseModel):
    """Schema for settlement creation."""
    taxi_party_id: int
    total_fare: int
    bank_name: str
    account_number: str
    # The client proposes 1/N and the host may edit each row before sending
    participants: List[ParticipantShare]


class SettlementCreated(BaseModel):
    """Schema for settlement creation response."""
    settlement_id: int


class SettlementParticipantResponse(BaseModel):
    """Schema for one participant row in the settlement detail."""
    user_id: int
    name: Optional[str] = None
    short_student_id: Optional[str] = None
    img_url: Optional[str] = None
    amount: int
    paid: bool
    paid_at: Optional[datetime] = None
    host: bool


class SettlementDetailResponse(BaseModel):
    """Schema for detailed settlement response with participants."""
    settlement_id: int
    taxi_party_id: int
    host_id: int
    total_fare: int
    bank_name: str
    account_number: str
    status: SettlementStatus
    created_at: datetime
    last_reminded_at: Optional[datetime] = None
    participants: List[SettlementParticipantResponse] = []


class MySettlementResponse(BaseModel):
    """Whether the party has a settlement the current user belongs to."""
    has_settlement: bool
    settlement_id: Optional[int] = None
