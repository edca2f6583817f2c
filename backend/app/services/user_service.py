import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.exceptions import ConflictError, InternalError, NotFoundError
from backend.app.models.models import User
from backend.app.schemas.users import UserCreate, UserUpdate

logger = logging.getLogger(__name__)

def normalize_email(email: str) -> str:
    return email.strip().lower()

def create_user(db: Session, user_data: UserCreate):
    """Service function to create a new user"""
    email = normalize_email(user_data.email)

    # Check if user with this email already exists
    existing_user = db.query(User).filter(User.email == email).first()
    if existing_user:
        raise ConflictError("Email already registered")

    new_user = User(email=email, name=user_data.name)

    db.add(new_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already registered")
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to create user %s", email)
        raise InternalError("Failed to create user", {"email": email}) from e
    db.refresh(new_user)

    logger.info("Created user %s", new_user.id)
    return new_user

def get_all_users(db: Session):
    """Service function to get all users"""
    return db.query(User).all()

def get_user_by_id(db: Session, user_id: str):
    """Service function to get a user by ID"""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User with id {user_id} not found")
    return user

def get_user_by_email(db: Session, email: str):
    """Service function to get a user by email, None when nobody has it"""
    return db.query(User).filter(User.email == normalize_email(email)).first()

def update_user(db: Session, user_id: str, user_data: UserUpdate):
    """Service function to update a user's information"""
    user = get_user_by_id(db, user_id)

    if user_data.name is not None:
        user.name = user_data.name

        # Keep the partner's cached display name in step
        if user.partner_id:
            partner = db.query(User).filter(User.id == user.partner_id).first()
            if partner:
                partner.partner_name = user_data.name

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to update user %s", user_id)
        raise InternalError("Failed to update user", {"user_id": user_id}) from e
    db.refresh(user)
    return user
