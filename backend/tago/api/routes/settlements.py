"""
Settlement management routes.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from tago.db.session import get_db
from tago.models.user import User
from tago.schemas.settlement import (
    SettlementCreate, SettlementCreated, SettlementDetailResponse, MySettlementResponse
)
from tago.api.dependencies import get_current_user, get_connection_registry
from tago.core.utils import format_response
from tago.services import settlement_service
from tago.services.connection_registry import ConnectionRegistry

router = APIRouter(prefix="/settlements", tags=["settlement"])


@router.post("", response_model=SettlementCreated, status_code=status.HTTP_201_CREATED)
def create_settlement(
    settlement_data: SettlementCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    registry: ConnectionRegistry = Depends(get_connection_registry)
):
    """Create the settlement for a taxi party (host only)."""
    settlement = settlement_service.create_settlement(current_user.id, settlement_data, db, registry)
    return SettlementCreated(settlement_id=settlement.id)


# Declared before /{settlement_id} so "current" is not parsed as an id
@router.get("/current", response_model=MySettlementResponse)
def get_my_settlement(
    taxi_party_id: int = Query(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Settlement id for a taxi party, if the current user belongs to it."""
    return settlement_service.get_my_settlement_id(taxi_party_id, current_user.id, db)


@router.get("/{settlement_id}", response_model=SettlementDetailResponse)
def get_settlement(
    settlement_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get settlement detail with each participant's payment status."""
    return settlement_service.get_settlement_detail(settlement_id, current_user.id, db)


@router.post("/{settlement_id}/participants/{user_id}/pay")
def mark_participant_paid(
    settlement_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Host marks a participant as paid. Already-paid participants stay as they are."""
    settlement = settlement_service.mark_paid(settlement_id, current_user.id, user_id, db)
    return format_response({"settlement_id": settlement.id, "status": settlement.status.value})


@router.post("/{settlement_id}/remind")
def remind_unpaid(
    settlement_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    registry: ConnectionRegistry = Depends(get_connection_registry)
):
    """Host reminds unpaid participants (once every cool-down window)."""
    reminded = settlement_service.remind_unpaid(settlement_id, current_user.id, db, registry)
    return format_response({"settlement_id": settlement_id, "reminded_user_ids": reminded}, "Reminder sent")
