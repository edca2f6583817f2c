"""
Unmatching a couple and purging the data they shared.

Shared data is hard-deleted. Before anything is touched a ``CouplePurge``
row is committed as a record of intent; it is marked complete, with the
per-store counts, in the same transaction that clears both users and deletes
the shared records. A crash or store failure leaves the intent row open so
``resume_incomplete_purges`` can finish the job.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.exceptions import InternalError, NotFoundError
from backend.app.models.models import Couple, CouplePurge, User
from backend.app.services import event_service, photo_service
from backend.app.services.couple_service import (
    clear_partner_fields, generate_couple_id, lock_couple
)

logger = logging.getLogger(__name__)

# Stores holding couple-scoped data, purged in this order on unmatch.
# Each callable deletes by couple identifier and returns the deleted count.
SHARED_DATA_PURGERS: Dict[str, Callable[[Session, str], int]] = {
    "events": event_service.delete_by_couple_id,
    "photos": photo_service.delete_by_couple_id,
}

def unmatch_partner(db: Session, user_id: str) -> Optional[CouplePurge]:
    """
    Dissolve the caller's pairing and purge everything tagged with the couple id.

    Returns the completed purge record, or None when the caller had no partner.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User with id {user_id} not found")

    if not user.partner_id and not user.couple_id:
        logger.info("User %s has no partner, nothing to unmatch", user_id)
        return None

    couple_id = user.couple_id or generate_couple_id(user.id, user.partner_id)

    purge = CouplePurge(couple_id=couple_id, requested_by=user_id)
    db.add(purge)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to record unmatch intent for couple %s", couple_id)
        raise InternalError(
            "Failed to unmatch partner", {"couple_id": couple_id, "step": "record_intent"}
        ) from e

    logger.info("Unmatch requested by %s for couple %s (purge %s)", user_id, couple_id, purge.id)
    return _execute_purge(db, purge)

def _execute_purge(db: Session, purge: CouplePurge) -> CouplePurge:
    couple_id = purge.couple_id
    progress = {"step": "lock_couple"}
    try:
        couple = lock_couple(db, couple_id)

        progress["step"] = "clear_partners"
        for member in _couple_members(db, purge, couple):
            progress["step"] = f"clear_partner:{member.id}"
            clear_partner_fields(member)
            db.flush()

        counts = {}
        for store_name, purger in SHARED_DATA_PURGERS.items():
            progress["step"] = f"purge_{store_name}"
            counts[store_name] = purger(db, couple_id)

        progress["step"] = "delete_couple"
        if couple is not None:
            db.delete(couple)

        progress["step"] = "complete_purge"
        purge.completed_at = datetime.utcnow()
        purge.deleted_counts = counts
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Purge %s of couple %s failed at step %s", purge.id, couple_id, progress["step"])
        raise InternalError(
            "Failed to purge shared data",
            {"couple_id": couple_id, "purge_id": purge.id, "step": progress["step"]},
        ) from e

    db.refresh(purge)
    logger.warning(
        "Purged shared data of couple %s (purge %s): %s",
        couple_id, purge.id,
        ", ".join(f"{name}={count}" for name, count in purge.deleted_counts.items()),
    )
    return purge

def _couple_members(db: Session, purge: CouplePurge, couple: Optional[Couple]) -> List[User]:
    """Every user still linked to the couple, through the couple row, a cached couple_id or the requester"""
    member_ids = {purge.requested_by}
    if couple is not None:
        member_ids.update([couple.partner_1_id, couple.partner_2_id])
    requester = db.query(User).filter(User.id == purge.requested_by).first()
    if requester is not None and requester.partner_id:
        member_ids.add(requester.partner_id)

    members = {u.id: u for u in db.query(User).filter(User.couple_id == purge.couple_id).all()}
    for member_id in member_ids - set(members):
        user = db.query(User).filter(User.id == member_id).first()
        # Someone already re-matched with a different partner is left alone
        if user is not None and user.couple_id in (None, purge.couple_id):
            members[user.id] = user
    return list(members.values())

def get_incomplete_purges(db: Session) -> List[CouplePurge]:
    return db.query(CouplePurge).filter(CouplePurge.completed_at.is_(None)).order_by(
        CouplePurge.requested_at.asc()
    ).all()

def resume_incomplete_purges(db: Session) -> List[CouplePurge]:
    """
    Finish purges whose intent was recorded but never completed. Safe to re-run.

    A purge that fails again stays open and is skipped; the rest still run.
    Returns the purges completed by this call.
    """
    completed = []
    for purge in get_incomplete_purges(db):
        purge_id, couple_id = purge.id, purge.couple_id
        logger.warning("Resuming purge %s of couple %s", purge_id, couple_id)
        try:
            completed.append(_execute_purge(db, purge))
        except InternalError:
            logger.exception("Purge %s of couple %s is still incomplete", purge_id, couple_id)
    return completed
