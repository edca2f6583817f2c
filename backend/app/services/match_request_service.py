import logging
from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.config import get_settings
from backend.app.exceptions import (
    ConflictError, InternalError, InvalidInputError, NotFoundError, UnauthorizedError
)
from backend.app.models.models import (
    CouplePurge, MatchRequest, MatchRequestAction, MatchRequestStatus, User
)
from backend.app.schemas.match_requests import (
    MatchRequestCreate, MatchRequestListResponse, MatchRequestResponse, MatchRequestRespond
)
from backend.app.services.couple_service import generate_couple_id, link_partners
from backend.app.services.user_service import get_user_by_email

logger = logging.getLogger(__name__)

def to_response(match_request: MatchRequest, sender: Optional[User] = None) -> MatchRequestResponse:
    """Convert a match request to its response, adding the sender's contact info if known"""
    response = MatchRequestResponse.model_validate(match_request)
    if sender is not None:
        response.sender_name = sender.name
        response.sender_email = sender.email
    return response

def _get_user(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()

def _get_match_request(db: Session, request_id: str) -> MatchRequest:
    match_request = db.query(MatchRequest).filter(MatchRequest.id == request_id).first()
    if not match_request:
        raise NotFoundError(f"Match request with id {request_id} not found")
    return match_request

def pending_request_exists(db: Session, sender_id: str, receiver_id: str) -> bool:
    """Whether the ordered (sender, receiver) pair already has a pending request"""
    return db.query(MatchRequest).filter(
        MatchRequest.sender_id == sender_id,
        MatchRequest.receiver_id == receiver_id,
        MatchRequest.status == MatchRequestStatus.PENDING.value,
    ).first() is not None

def send_match_request(
    db: Session,
    sender_id: str,
    request_data: MatchRequestCreate,
) -> MatchRequestResponse:
    """Service function to send a match request to another user by email"""
    logger.info("Sending match request from %s to %s", sender_id, request_data.receiver_email)

    sender = _get_user(db, sender_id)
    if not sender:
        raise NotFoundError(f"User with id {sender_id} not found")

    receiver = get_user_by_email(db, request_data.receiver_email)
    if not receiver:
        raise NotFoundError(f"No user registered with email {request_data.receiver_email}")

    if receiver.id == sender_id:
        raise InvalidInputError("Cannot send a match request to yourself")

    # Fast path; the partial unique index is what actually enforces this
    if pending_request_exists(db, sender_id, receiver.id):
        raise ConflictError("You already have a pending request to this user")

    now = datetime.utcnow()
    match_request = MatchRequest(
        sender_id=sender_id,
        receiver_id=receiver.id,
        receiver_email=receiver.email,
        anniversary_date=request_data.anniversary_date,
        message=request_data.message,
        status=MatchRequestStatus.PENDING.value,
        created_at=now,
        updated_at=now,
    )
    db.add(match_request)

    try:
        db.commit()
    except IntegrityError:
        # A concurrent identical request won the race
        db.rollback()
        raise ConflictError("You already have a pending request to this user")
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to create match request from %s to %s", sender_id, receiver.id)
        raise InternalError(
            "Failed to create match request",
            {"sender_id": sender_id, "receiver_id": receiver.id},
        ) from e
    db.refresh(match_request)

    logger.info("Match request %s sent", match_request.id)
    return to_response(match_request, sender)

def get_match_request(db: Session, request_id: str, user_id: str) -> MatchRequestResponse:
    """Service function to get a single match request visible to one of its participants"""
    match_request = _get_match_request(db, request_id)

    if user_id not in (match_request.sender_id, match_request.receiver_id):
        raise UnauthorizedError("You are not a participant in this match request")

    return to_response(match_request, _get_user(db, match_request.sender_id))

def _validate_pagination(page: int, limit: int) -> None:
    settings = get_settings()
    if page < 1:
        raise InvalidInputError("page must be at least 1")
    if limit < 1 or limit > settings.max_page_size:
        raise InvalidInputError(f"limit must be between 1 and {settings.max_page_size}")

def _parse_status(status: Optional[str]) -> Optional[MatchRequestStatus]:
    if not status:
        return None
    try:
        return MatchRequestStatus(status)
    except ValueError:
        allowed = ", ".join(s.value for s in MatchRequestStatus)
        raise InvalidInputError(f"Unknown status '{status}', expected one of: {allowed}")

def _list_requests(
    db: Session,
    column,
    user_id: str,
    status: Optional[str],
    page: int,
    limit: int,
) -> Tuple[List[MatchRequest], int]:
    _validate_pagination(page, limit)
    status_filter = _parse_status(status)

    query = db.query(MatchRequest).filter(column == user_id)
    if status_filter:
        query = query.filter(MatchRequest.status == status_filter.value)

    total = query.count()
    match_requests = (
        query.order_by(MatchRequest.created_at.desc(), MatchRequest.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return match_requests, total

def get_sent_requests(
    db: Session,
    user_id: str,
    status: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> MatchRequestListResponse:
    """Service function to list match requests sent by a user"""
    limit = limit or get_settings().default_page_size
    logger.debug("Getting sent match requests for %s (status=%s, page=%d)", user_id, status, page)

    match_requests, total = _list_requests(db, MatchRequest.sender_id, user_id, status, page, limit)

    return MatchRequestListResponse(
        match_requests=[to_response(mr) for mr in match_requests],
        total=total,
        page=page,
        limit=limit,
    )

def get_received_requests(
    db: Session,
    user_id: str,
    status: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> MatchRequestListResponse:
    """Service function to list match requests received by a user, with sender info"""
    limit = limit or get_settings().default_page_size
    logger.debug("Getting received match requests for %s (status=%s, page=%d)", user_id, status, page)

    match_requests, total = _list_requests(db, MatchRequest.receiver_id, user_id, status, page, limit)

    responses = []
    for mr in match_requests:
        sender = _get_user(db, mr.sender_id)
        if sender is None:
            logger.warning("Sender %s of match request %s no longer exists", mr.sender_id, mr.id)
        responses.append(to_response(mr, sender))

    return MatchRequestListResponse(match_requests=responses, total=total, page=page, limit=limit)

def _parse_action(action: str) -> MatchRequestAction:
    try:
        return MatchRequestAction(action)
    except ValueError:
        raise InvalidInputError(f"Unknown action '{action}', expected 'accept' or 'decline'")

def _transition(db: Session, match_request: MatchRequest, new_status: MatchRequestStatus, now: datetime) -> None:
    """
    Move a request out of pending, only if it is still pending in the database.

    Two concurrent responders can both see ``pending`` in memory; only one of
    their conditional updates matches a row.
    """
    updated = db.query(MatchRequest).filter(
        MatchRequest.id == match_request.id,
        MatchRequest.status == MatchRequestStatus.PENDING.value,
    ).update(
        {
            MatchRequest.status: new_status.value,
            MatchRequest.responded_at: now,
            MatchRequest.updated_at: now,
        },
        synchronize_session="fetch",
    )
    if updated == 0:
        db.rollback()
        raise ConflictError("Match request already responded to")

def respond_to_match_request(
    db: Session,
    request_id: str,
    user_id: str,
    respond_data: MatchRequestRespond,
) -> MatchRequestResponse:
    """
    Service function to accept or decline a pending match request.

    On accept the couple row, both users' partner fields and the request
    status are committed together. Decline only touches the request.
    """
    logger.info("User %s responding '%s' to match request %s", user_id, respond_data.action, request_id)

    match_request = _get_match_request(db, request_id)

    if match_request.receiver_id != user_id:
        raise UnauthorizedError("Only the receiver can respond to this match request")

    if match_request.status != MatchRequestStatus.PENDING.value:
        raise ConflictError(f"Match request already {match_request.status}")

    action = _parse_action(respond_data.action)
    now = datetime.utcnow()

    if action == MatchRequestAction.DECLINE:
        _transition(db, match_request, MatchRequestStatus.DECLINED, now)
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Failed to decline match request %s", request_id)
            raise InternalError("Failed to update match request", {"request_id": request_id}) from e
        db.refresh(match_request)
        logger.info("Match request %s declined", request_id)
        return to_response(match_request, _get_user(db, match_request.sender_id))

    return _accept(db, match_request, respond_data.anniversary_date, now)

def _accept(
    db: Session,
    match_request: MatchRequest,
    anniversary_override: Optional[date],
    now: datetime,
) -> MatchRequestResponse:
    sender = _get_user(db, match_request.sender_id)
    if not sender:
        raise NotFoundError(f"Sender with id {match_request.sender_id} not found")
    receiver = _get_user(db, match_request.receiver_id)
    if not receiver:
        raise NotFoundError(f"Receiver with id {match_request.receiver_id} not found")

    if sender.partner_id:
        raise ConflictError("The sender is already matched with a partner")
    if receiver.partner_id:
        raise ConflictError("You are already matched with a partner")

    couple_id = generate_couple_id(sender.id, receiver.id)
    unfinished_purge = db.query(CouplePurge).filter(
        CouplePurge.couple_id == couple_id,
        CouplePurge.completed_at.is_(None),
    ).first()
    if unfinished_purge:
        raise ConflictError("A previous unmatch of this couple has not finished yet")

    # Receiver's date wins over the one proposed by the sender
    anniversary_date = anniversary_override or match_request.anniversary_date

    progress = {"step": "transition_request"}
    try:
        _transition(db, match_request, MatchRequestStatus.ACCEPTED, now)
        link_partners(db, sender, receiver, anniversary_date, now, progress)
        progress["step"] = "commit"
        db.commit()
    except ConflictError as e:
        db.rollback()
        logger.info("Match request %s not accepted: %s", match_request.id, e.detail)
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(
            "Failed to accept match request %s at step %s (couple %s)",
            match_request.id, progress["step"], couple_id,
        )
        raise InternalError(
            "Failed to link partners",
            {"couple_id": couple_id, "request_id": match_request.id, "step": progress["step"]},
        ) from e

    db.refresh(match_request)
    logger.info(
        "Match request %s accepted, couple %s created (anniversary %s)",
        match_request.id, couple_id, anniversary_date,
    )
    return to_response(match_request, sender)

def cancel_match_request(db: Session, request_id: str, user_id: str) -> None:
    """Service function for the sender to withdraw a pending match request"""
    logger.info("User %s cancelling match request %s", user_id, request_id)

    match_request = _get_match_request(db, request_id)

    if match_request.sender_id != user_id:
        raise UnauthorizedError("Only the sender can cancel this match request")

    if match_request.status != MatchRequestStatus.PENDING.value:
        raise ConflictError("Can only cancel pending requests")

    # Delete only while still pending so a concurrent accept is not undone
    deleted = db.query(MatchRequest).filter(
        MatchRequest.id == request_id,
        MatchRequest.status == MatchRequestStatus.PENDING.value,
    ).delete(synchronize_session="fetch")
    if deleted == 0:
        db.rollback()
        raise ConflictError("Can only cancel pending requests")

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to cancel match request %s", request_id)
        raise InternalError("Failed to cancel match request", {"request_id": request_id}) from e

    logger.info("Match request %s cancelled", request_id)
