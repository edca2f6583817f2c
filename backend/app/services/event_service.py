import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.exceptions import ConflictError, InternalError, NotFoundError, UnauthorizedError
from backend.app.models.models import Event, User
from backend.app.schemas.events import EventCreate
from backend.app.services.couple_service import lock_couple

logger = logging.getLogger(__name__)

def _get_matched_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User with id {user_id} not found")
    if not user.couple_id:
        raise ConflictError("You need to be matched with a partner to share events")
    return user

def create_event(db: Session, user_id: str, event_data: EventCreate) -> Event:
    """Service function to create an event visible to both partners"""
    user = _get_matched_user(db, user_id)

    # Holding the couple row lock keeps this write out of an in-flight unmatch
    couple = lock_couple(db, user.couple_id)
    if couple is None:
        db.rollback()
        raise ConflictError("You need to be matched with a partner to share events")

    event = Event(
        couple_id=couple.id,
        user_id=user_id,
        title=event_data.title,
        description=event_data.description,
        date=event_data.date,
        time=event_data.time,
        location=event_data.location,
        event_type=event_data.event_type.value,
    )
    db.add(event)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to create event for couple %s", couple.id)
        raise InternalError("Failed to create event", {"couple_id": couple.id}) from e
    db.refresh(event)
    return event

def get_events_for_user(db: Session, user_id: str) -> List[Event]:
    """Service function to list the events of the caller's couple, empty when unmatched"""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User with id {user_id} not found")
    if not user.couple_id:
        return []
    return db.query(Event).filter(Event.couple_id == user.couple_id).order_by(Event.date.asc()).all()

def delete_event(db: Session, event_id: str, user_id: str) -> None:
    """Service function to delete one event; either partner may do it"""
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise NotFoundError(f"Event with id {event_id} not found")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or user.couple_id != event.couple_id:
        raise UnauthorizedError("This event does not belong to your couple")

    db.delete(event)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to delete event %s", event_id)
        raise InternalError("Failed to delete event", {"event_id": event_id}) from e

def delete_by_couple_id(db: Session, couple_id: str) -> int:
    """
    Delete every event of a couple and return how many were removed.

    Runs inside the caller's transaction; nothing is committed here.
    """
    return db.query(Event).filter(Event.couple_id == couple_id).delete(synchronize_session=False)
