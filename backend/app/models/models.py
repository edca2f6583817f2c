from uuid import uuid4
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Column, String, DateTime, ForeignKey, JSON, Date, Text, Index, text
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# --- ENUMS ---

class MatchRequestStatus(str, Enum):
    """Status of a match request. Accepted and declined are terminal."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"

class MatchRequestAction(str, Enum):
    """Tokens a receiver may send when responding to a match request"""
    ACCEPT = "accept"
    DECLINE = "decline"

class EventType(str, Enum):
    ANNIVERSARY = "anniversary"
    DATE = "date"
    MILESTONE = "milestone"
    CELEBRATION = "celebration"
    OTHER = "other"

# --- SQLALCHEMY MODELS ---

class User(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    email = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Partner linkage, a cached view of the Couple row
    partner_id = Column(String, ForeignKey("users.id"), nullable=True)
    partner_name = Column(String, nullable=True)
    couple_id = Column(String, nullable=True, index=True)
    matched_at = Column(DateTime, nullable=True)
    anniversary_date = Column(Date, nullable=True)

    # Relationships
    sent_requests = relationship("MatchRequest", foreign_keys="MatchRequest.sender_id", back_populates="sender")
    received_requests = relationship("MatchRequest", foreign_keys="MatchRequest.receiver_id", back_populates="receiver")

class Couple(Base):
    """Authoritative record of a matched pair, keyed by the couple identifier"""
    __tablename__ = "couples"
    id = Column(String, primary_key=True)
    partner_1_id = Column(String, ForeignKey("users.id"), nullable=False)
    partner_2_id = Column(String, ForeignKey("users.id"), nullable=False)
    matched_at = Column(DateTime, default=datetime.utcnow)
    anniversary_date = Column(Date, nullable=True)

class MatchRequest(Base):
    """Invitation from one user to another to become partners"""
    __tablename__ = "match_requests"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    sender_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    receiver_email = Column(String, nullable=False)
    anniversary_date = Column(Date, nullable=False)
    message = Column(Text, nullable=True)
    status = Column(String, nullable=False, default=MatchRequestStatus.PENDING.value)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)
    responded_at = Column(DateTime, nullable=True)

    # Relationships
    sender = relationship("User", foreign_keys=[sender_id], back_populates="sent_requests")
    receiver = relationship("User", foreign_keys=[receiver_id], back_populates="received_requests")

    __table_args__ = (
        # At most one pending request per ordered (sender, receiver) pair
        Index(
            "uq_match_requests_pending_pair",
            "sender_id",
            "receiver_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

class Event(Base):
    """Calendar event shared by both partners of a couple"""
    __tablename__ = "events"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    couple_id = Column(String, nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    date = Column(Date, nullable=False)
    time = Column(String, nullable=True)
    location = Column(String, nullable=True)
    event_type = Column(String, default=EventType.OTHER.value)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

class Photo(Base):
    """Photo metadata shared by both partners of a couple"""
    __tablename__ = "photos"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    couple_id = Column(String, nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=False)  # Storage key from the upload service
    date = Column(Date, nullable=True)
    location = Column(String, nullable=True)
    tags = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

class CouplePurge(Base):
    """Intent log for cascading deletion of a couple's shared data"""
    __tablename__ = "couple_purges"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    couple_id = Column(String, nullable=False, index=True)
    requested_by = Column(String, ForeignKey("users.id"), nullable=False)
    requested_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    deleted_counts = Column(JSON, nullable=True)  # {"events": 3, "photos": 12}
