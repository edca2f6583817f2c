import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient
import os
from datetime import date, datetime
from uuid import uuid4

from backend.app.models.models import Base, User, Couple, MatchRequest, Event, Photo, CouplePurge
from backend.app.database import get_db_session
from backend.app import main
from backend.app.main import app
from backend.app.services.couple_service import generate_couple_id

# Use a test database
TEST_DATABASE_URL = "sqlite:///./test.db"

@pytest.fixture(scope="session")
def db_engine():
    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    yield engine
    # Teardown - drop all tables
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists("./test.db"):
        os.remove("./test.db")

@pytest.fixture(scope="function")
def db_session(db_engine):
    """Returns a fresh SQLAlchemy session for each test"""
    Session = sessionmaker(bind=db_engine)
    session = Session()

    # Clear out test data from previous run
    session.query(CouplePurge).delete()
    session.query(Photo).delete()
    session.query(Event).delete()
    session.query(MatchRequest).delete()
    session.query(Couple).delete()
    session.query(User).update({User.partner_id: None})
    session.query(User).delete()
    session.commit()

    yield session
    session.close()

@pytest.fixture
def startup_on_test_db(db_engine, monkeypatch):
    """Points the application startup work at the test database"""
    monkeypatch.setattr(main, "create_tables", lambda: None)
    monkeypatch.setattr(main, "SessionLocal", sessionmaker(bind=db_engine))

@pytest.fixture
def client(db_session, startup_on_test_db):
    """Test client fixture that uses the db_session fixture"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db_session] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

@pytest.fixture
def user_factory(db_session):
    """Creates extra users on demand"""
    def _make_user(email, name):
        user = User(id=str(uuid4()), email=email, name=name)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make_user

@pytest.fixture
def test_user(user_factory):
    """Creates a test user and returns it"""
    return user_factory("alice@example.com", "Alice")

@pytest.fixture
def test_partner(user_factory):
    """Creates the user that receives match requests"""
    return user_factory("bob@example.com", "Bob")

@pytest.fixture
def test_couple(db_session, test_user, test_partner):
    """Links test_user and test_partner as a couple and returns the couple row"""
    couple_id = generate_couple_id(test_user.id, test_partner.id)
    matched_at = datetime.utcnow()
    partner_1_id, partner_2_id = sorted([test_user.id, test_partner.id])
    couple = Couple(
        id=couple_id,
        partner_1_id=partner_1_id,
        partner_2_id=partner_2_id,
        matched_at=matched_at,
        anniversary_date=date(2024, 1, 1)
    )
    db_session.add(couple)

    for user, partner in [(test_user, test_partner), (test_partner, test_user)]:
        user.partner_id = partner.id
        user.partner_name = partner.name
        user.couple_id = couple_id
        user.matched_at = matched_at
        user.anniversary_date = date(2024, 1, 1)

    db_session.commit()
    db_session.refresh(couple)
    return couple

@pytest.fixture
def auth_headers():
    """Builds the caller identity header the auth gateway would set"""
    def _headers(user):
        return {"X-User-Id": user.id}
    return _headers
