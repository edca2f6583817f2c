import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.exceptions import ConflictError, InternalError, NotFoundError, UnauthorizedError
from backend.app.models.models import Photo, User
from backend.app.schemas.photos import PhotoCreate
from backend.app.services.couple_service import lock_couple

logger = logging.getLogger(__name__)

def create_photo(db: Session, user_id: str, photo_data: PhotoCreate) -> Photo:
    """Service function to add a photo to the couple's shared album"""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User with id {user_id} not found")

    couple = lock_couple(db, user.couple_id) if user.couple_id else None
    if couple is None:
        db.rollback()
        raise ConflictError("You need to be matched with a partner to share photos")

    photo = Photo(
        couple_id=couple.id,
        user_id=user_id,
        title=photo_data.title,
        description=photo_data.description,
        image_url=photo_data.image_url,
        date=photo_data.date,
        location=photo_data.location,
        tags=photo_data.tags,
    )
    db.add(photo)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to create photo for couple %s", couple.id)
        raise InternalError("Failed to create photo", {"couple_id": couple.id}) from e
    db.refresh(photo)
    return photo

def get_photos_for_user(db: Session, user_id: str) -> List[Photo]:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User with id {user_id} not found")
    if not user.couple_id:
        return []
    return db.query(Photo).filter(Photo.couple_id == user.couple_id).order_by(Photo.created_at.desc()).all()

def delete_photo(db: Session, photo_id: str, user_id: str) -> None:
    photo = db.query(Photo).filter(Photo.id == photo_id).first()
    if not photo:
        raise NotFoundError(f"Photo with id {photo_id} not found")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or user.couple_id != photo.couple_id:
        raise UnauthorizedError("This photo does not belong to your couple")

    db.delete(photo)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to delete photo %s", photo_id)
        raise InternalError("Failed to delete photo", {"photo_id": photo_id}) from e

def delete_by_couple_id(db: Session, couple_id: str) -> int:
    """Delete every photo of a couple inside the caller's transaction"""
    return db.query(Photo).filter(Photo.couple_id == couple_id).delete(synchronize_session=False)
