import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from backend.app.exceptions import ConflictError, NotFoundError
from backend.app.models.models import Couple, User

logger = logging.getLogger(__name__)

COUPLE_ID_SEPARATOR = "_"

def generate_couple_id(user_id_1: str, user_id_2: str) -> str:
    """
    Canonical identifier for a pair of users.

    The two ids are sorted before joining, so the result does not depend on
    which partner is passed first.
    """
    first, second = sorted([str(user_id_1), str(user_id_2)])
    return f"{first}{COUPLE_ID_SEPARATOR}{second}"

def couple_id_contains(couple_id: str, user_id: str, partner_id: str) -> bool:
    """Check that a couple identifier belongs to exactly this pair of users"""
    return couple_id == generate_couple_id(user_id, partner_id)

def get_couple_by_id(db: Session, couple_id: str) -> Couple:
    """Service function to get a couple by its identifier"""
    couple = db.query(Couple).filter(Couple.id == couple_id).first()
    if not couple:
        raise NotFoundError(f"Couple with id {couple_id} not found")
    return couple

def get_couple_for_user(db: Session, user_id: str) -> Couple:
    """Service function to get the couple the user currently belongs to"""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User with id {user_id} not found")
    if not user.couple_id:
        raise NotFoundError("User is not matched with a partner")
    return get_couple_by_id(db, user.couple_id)

def lock_couple(db: Session, couple_id: str) -> Optional[Couple]:
    """
    Load the couple row with a row lock held until the transaction ends.

    Unmatch and shared-data writes both take this lock, so a photo or event
    cannot be attributed to a couple that is being purged. SQLite ignores
    FOR UPDATE and serializes writers at the database level instead.
    """
    return db.query(Couple).filter(Couple.id == couple_id).with_for_update().first()

def _link_user(
    db: Session,
    user: User,
    partner: User,
    couple_id: str,
    anniversary_date: date,
    matched_at: datetime,
) -> None:
    """Point ``user`` at ``partner``, only if the stored row has no partner yet"""
    updated = db.query(User).filter(
        User.id == user.id,
        User.partner_id.is_(None),
    ).update(
        {
            User.partner_id: partner.id,
            User.partner_name: partner.name,
            User.couple_id: couple_id,
            User.matched_at: matched_at,
            User.anniversary_date: anniversary_date,
        },
        synchronize_session="fetch",
    )
    if updated != 1:
        raise ConflictError(f"User {user.id} is already matched with a partner")

def link_partners(
    db: Session,
    sender: User,
    receiver: User,
    anniversary_date: date,
    matched_at: datetime,
    progress: Optional[dict] = None,
) -> Couple:
    """
    Write the couple row and both users' partner fields.

    Nothing is committed here; the caller commits so the couple row, both
    user records and the match request transition land in one transaction.
    ``progress["step"]`` tracks which write is in flight for error reporting.
    Raises ``ConflictError`` when either user gained a partner since it was
    read; the caller rolls back.
    """
    progress = progress if progress is not None else {}
    couple_id = generate_couple_id(sender.id, receiver.id)
    partner_1_id, partner_2_id = sorted([sender.id, receiver.id])

    progress["step"] = "create_couple"
    couple = db.query(Couple).filter(Couple.id == couple_id).first()
    if couple is None:
        couple = Couple(id=couple_id, partner_1_id=partner_1_id, partner_2_id=partner_2_id)
        db.add(couple)
    couple.matched_at = matched_at
    couple.anniversary_date = anniversary_date
    db.flush()

    progress["step"] = "update_sender"
    _link_user(db, sender, receiver, couple_id, anniversary_date, matched_at)

    progress["step"] = "update_receiver"
    _link_user(db, receiver, sender, couple_id, anniversary_date, matched_at)

    logger.info(
        "Linked partners %s and %s as couple %s (anniversary %s)",
        sender.id, receiver.id, couple_id, anniversary_date,
    )
    return couple

def clear_partner_fields(user: User) -> None:
    """Reset every partner-linkage field on a user record"""
    user.partner_id = None
    user.partner_name = None
    user.couple_id = None
    user.matched_at = None
    user.anniversary_date = None
