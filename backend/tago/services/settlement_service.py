"""
Settlement service: fare split lifecycle for a taxi party.

A settlement starts IN_PROGRESS and becomes COMPLETED once every participant
is marked paid. Notifications and chat announcements are side effects: they
are attempted, and a failure is logged without failing the settlement
operation itself. Each side effect runs in its own savepoint so a failed
insert rolls back only that side effect.
"""
import logging
from datetime import timedelta
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tago.core.config import settings
from tago.core.exceptions import (
    ConflictError, NotFoundError, PermissionDeniedError, RateLimitError, ValidationError
)
from tago.core.utils import utcnow
from tago.models.settlement import Settlement, SettlementParticipant, SettlementStatus
from tago.models.taxi_party import TaxiParty
from tago.models.user import User
from tago.schemas.settlement import (
    MySettlementResponse, SettlementCreate,
    SettlementDetailResponse, SettlementParticipantResponse
)
from tago.services import chat_service, notification_service
from tago.services.connection_registry import ConnectionRegistry

logger = logging.getLogger(__name__)


def create_settlement(
    host_id: int,
    data: SettlementCreate,
    db: Session,
    registry: ConnectionRegistry
) -> Settlement:
    """
    Create the settlement for a taxi party and notify everyone who owes money.

    The host's own row is created already paid since the host fronted the fare.
    """
    taxi_party = db.query(TaxiParty).filter(TaxiParty.id == data.taxi_party_id).first()
    if not taxi_party:
        raise NotFoundError(f"Taxi party not found: id={data.taxi_party_id}")

    host = db.query(User).filter(User.id == host_id).first()
    if not host:
        raise NotFoundError(f"User not found: id={host_id}")

    if taxi_party.host_id != host_id:
        raise PermissionDeniedError("Only the party host can create a settlement")

    existing = db.query(Settlement).filter(Settlement.taxi_party_id == taxi_party.id).first()
    if existing:
        raise ConflictError(f"Settlement already exists for this taxi party: settlement_id={existing.id}")

    _validate_request(data)

    settlement = Settlement(
        taxi_party_id=taxi_party.id,
        host_id=host.id,
        total_fare=data.total_fare,
        bank_name=data.bank_name.strip(),
        account_number=data.account_number.strip(),
        status=SettlementStatus.IN_PROGRESS
    )

    for share in data.participants:
        user = db.query(User).filter(User.id == share.user_id).first()
        if not user:
            raise NotFoundError(f"Settlement participant not found: id={share.user_id}")

        is_host = user.id == host_id
        participant = SettlementParticipant(
            user_id=user.id,
            amount=share.amount,
            paid=False,
            is_host=is_host
        )
        if is_host:
            participant.mark_paid()
        settlement.add_participant(participant)

    # Only possible when the host is the sole participant
    settlement.update_status_if_completed()

    db.add(settlement)
    try:
        db.flush()
    except IntegrityError:
        # Lost a race against another request creating the same settlement
        db.rollback()
        raise ConflictError("Settlement already exists for this taxi party")

    for participant in settlement.participants:
        if participant.user_id == host_id:
            continue
        try:
            with db.begin_nested():
                notification_service.send_settlement_request(
                    participant.user_id, settlement.id, db, registry
                )
        except Exception as e:
            logger.error(
                f"Settlement request notification failed (settlement still created): "
                f"receiver_id={participant.user_id}, settlement_id={settlement.id}, error={e}",
                exc_info=True
            )

    _post_chat_message(settlement, reminder=False, db=db)

    db.commit()
    db.refresh(settlement)

    logger.info(
        f"Settlement created: settlement_id={settlement.id}, "
        f"taxi_party_id={taxi_party.id}, host_id={host_id}"
    )
    return settlement


def get_settlement_detail(settlement_id: int, user_id: int, db: Session) -> SettlementDetailResponse:
    """Settlement detail, visible to the host and participants only."""
    settlement = _get_settlement(settlement_id, db)

    if not settlement.is_member(user_id):
        raise PermissionDeniedError("Not allowed to view this settlement")

    participants = [
        SettlementParticipantResponse(
            user_id=p.user_id,
            name=p.user.name,
            short_student_id=p.user.short_student_id,
            img_url=p.user.img_url,
            amount=p.amount,
            paid=p.paid,
            paid_at=p.paid_at,
            host=p.is_host
        )
        for p in settlement.participants
    ]

    return SettlementDetailResponse(
        settlement_id=settlement.id,
        taxi_party_id=settlement.taxi_party_id,
        host_id=settlement.host_id,
        total_fare=settlement.total_fare,
        bank_name=settlement.bank_name,
        account_number=settlement.account_number,
        status=settlement.status,
        created_at=settlement.created_at,
        last_reminded_at=settlement.last_reminded_at,
        participants=participants
    )


def mark_paid(settlement_id: int, host_id: int, target_user_id: int, db: Session) -> Settlement:
    """Host confirms a participant's payment. Repeating the call changes nothing."""
    settlement = _get_settlement(settlement_id, db)

    if settlement.host_id != host_id:
        raise PermissionDeniedError("Only the settlement host can mark payments")

    participant = settlement.find_participant(target_user_id)
    if not participant:
        raise NotFoundError(f"User {target_user_id} is not part of this settlement")

    newly_paid = participant.mark_paid()
    completed = settlement.update_status_if_completed()

    if newly_paid or completed:
        db.commit()
        db.refresh(settlement)

    logger.info(
        f"Settlement payment marked: settlement_id={settlement_id}, host_id={host_id}, "
        f"target_user_id={target_user_id}, status={settlement.status.value}"
    )
    return settlement


def remind_unpaid(
    settlement_id: int,
    host_id: int,
    db: Session,
    registry: ConnectionRegistry
) -> List[int]:
    """
    Nudge everyone who has not paid yet, at most once per cool-down window.

    Returns the ids of the users a reminder notification was created for.
    """
    settlement = _get_settlement(settlement_id, db)

    if settlement.host_id != host_id:
        raise PermissionDeniedError("Only the settlement host can send reminders")

    now = utcnow()
    cooldown = timedelta(hours=settings.SETTLEMENT_REMIND_COOLDOWN_HOURS)
    if settlement.last_reminded_at is not None and settlement.last_reminded_at > now - cooldown:
        raise RateLimitError(
            f"Reminders can be sent once every {settings.SETTLEMENT_REMIND_COOLDOWN_HOURS} hours"
        )

    host_name = settlement.host.name or settings.DEFAULT_HOST_NAME

    reminded = []
    for participant in settlement.participants:
        if participant.paid or participant.user_id == host_id:
            continue
        try:
            with db.begin_nested():
                notification_service.send_settlement_remind(
                    participant.user_id, settlement.id, host_name, db, registry
                )
            reminded.append(participant.user_id)
        except Exception as e:
            logger.error(
                f"Settlement reminder notification failed (reminder continues): "
                f"receiver_id={participant.user_id}, settlement_id={settlement.id}, error={e}",
                exc_info=True
            )

    _post_chat_message(settlement, reminder=True, db=db)

    settlement.last_reminded_at = now
    db.commit()

    logger.info(f"Settlement reminder sent: settlement_id={settlement_id}, host_id={host_id}, reminded={reminded}")
    return reminded


def get_my_settlement_id(taxi_party_id: int, user_id: int, db: Session) -> MySettlementResponse:
    """Settlement id of a party, if one exists and the user belongs to it."""
    taxi_party = db.query(TaxiParty).filter(TaxiParty.id == taxi_party_id).first()
    if not taxi_party:
        raise NotFoundError(f"Taxi party not found: id={taxi_party_id}")

    settlement = db.query(Settlement).filter(Settlement.taxi_party_id == taxi_party_id).first()
    if not settlement:
        return MySettlementResponse(has_settlement=False, settlement_id=None)

    if not settlement.is_member(user_id):
        raise PermissionDeniedError("Only settlement members can look up this settlement")

    return MySettlementResponse(has_settlement=True, settlement_id=settlement.id)


def build_chat_message(settlement: Settlement, reminder: bool) -> str:
    """
    Account announcement posted into the party chat.

    Quotes the amount only when every participant owes the same.
    """
    bank_info = f"{settlement.bank_name} {settlement.account_number}"
    uniform_amount = settlement.uniform_amount()

    if uniform_amount is not None:
        if reminder:
            return f"아직 정산하지 않으신 슈니는 {bank_info}으로 {uniform_amount}원씩 입금 부탁드립니다!"
        return f"{bank_info}으로 {uniform_amount}원씩 입금 부탁드립니다!"

    if reminder:
        return f"아직 정산하지 않으신 슈니는 {bank_info}으로 앱에 표시된 금액 입금 부탁드립니다!"
    return f"{bank_info}으로 각자 앱에 표시된 정산 금액 입금 부탁드립니다!"


def _validate_request(data: SettlementCreate):
    if data.total_fare is None or data.total_fare <= 0:
        raise ValidationError("Total fare must be greater than 0")
    if not data.bank_name or not data.bank_name.strip():
        raise ValidationError("Bank name is required")
    if not data.account_number or not data.account_number.strip():
        raise ValidationError("Account number is required")
    if not data.participants:
        raise ValidationError("At least one participant share is required")

    seen = set()
    for share in data.participants:
        if share.amount is None or share.amount < 0:
            raise ValidationError("Participant amount must be 0 or greater")
        if share.user_id in seen:
            raise ValidationError(f"Duplicate participant: user_id={share.user_id}")
        seen.add(share.user_id)


def _get_settlement(settlement_id: int, db: Session) -> Settlement:
    settlement = db.query(Settlement).filter(Settlement.id == settlement_id).first()
    if not settlement:
        raise NotFoundError(f"Settlement not found: id={settlement_id}")
    return settlement


def _post_chat_message(settlement: Settlement, reminder: bool, db: Session):
    try:
        with db.begin_nested():
            chat_service.append_system_message(
                settlement.taxi_party_id,
                settlement.host_id,
                build_chat_message(settlement, reminder),
                db
            )
    except Exception as e:
        logger.error(
            f"Settlement chat message failed: settlement_id={settlement.id}, reminder={reminder}, error={e}",
            exc_info=True
        )
