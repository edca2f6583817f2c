import pytest
from datetime import date, datetime, timedelta
from fastapi import HTTPException, status
from sqlalchemy.exc import OperationalError
from fastapi.testclient import TestClient
from unittest.mock import patch

from backend.app import main
from backend.app.exceptions import InternalError
from backend.app.models.models import Couple, CouplePurge, Event, Photo, User
from backend.app.schemas.match_requests import MatchRequestCreate, MatchRequestRespond
from backend.app.services import photo_service, purge_service
from backend.app.services.couple_service import generate_couple_id
from backend.app.services.match_request_service import send_match_request, respond_to_match_request
from backend.app.services.purge_service import unmatch_partner, resume_incomplete_purges, get_incomplete_purges

def _match(db_session, sender, receiver, anniversary=date(2024, 1, 1)):
    request = send_match_request(
        db_session,
        sender.id,
        MatchRequestCreate(receiver_email=receiver.email, anniversary_date=anniversary)
    )
    respond_to_match_request(db_session, request.id, receiver.id, MatchRequestRespond(action="accept"))
    return generate_couple_id(sender.id, receiver.id)

def _add_shared_data(db_session, couple_id, owner, events=2, photos=3):
    for i in range(events):
        db_session.add(Event(couple_id=couple_id, user_id=owner.id, title=f"Event {i}", date=date(2024, 3, i + 1)))
    for i in range(photos):
        db_session.add(Photo(couple_id=couple_id, user_id=owner.id, title=f"Photo {i}", image_url=f"photos/{i}.jpg"))
    db_session.commit()

def _assert_unlinked(user):
    assert user.partner_id is None
    assert user.partner_name is None
    assert user.couple_id is None
    assert user.matched_at is None
    assert user.anniversary_date is None

def test_match_then_unmatch_scenario(db_session, user_factory, test_user, test_partner):
    """Full lifecycle: match A and B, unmatch, and check a second couple is untouched"""
    carol = user_factory("carol@example.com", "Carol")
    dave = user_factory("dave@example.com", "Dave")

    ab = _match(db_session, test_user, test_partner)
    cd = _match(db_session, carol, dave)

    db_session.refresh(test_user)
    db_session.refresh(test_partner)
    assert test_user.couple_id == test_partner.couple_id == ab
    assert test_user.anniversary_date == date(2024, 1, 1)
    assert test_user.matched_at is not None

    _add_shared_data(db_session, ab, test_user)
    _add_shared_data(db_session, cd, carol, events=1, photos=1)

    purge = unmatch_partner(db_session, test_user.id)

    assert purge.couple_id == ab
    assert purge.completed_at is not None
    assert purge.deleted_counts == {"events": 2, "photos": 3}

    db_session.expire_all()
    _assert_unlinked(db_session.query(User).filter(User.id == test_user.id).first())
    _assert_unlinked(db_session.query(User).filter(User.id == test_partner.id).first())
    assert db_session.query(Event).filter(Event.couple_id == ab).count() == 0
    assert db_session.query(Photo).filter(Photo.couple_id == ab).count() == 0
    assert db_session.query(Couple).filter(Couple.id == ab).first() is None

    # The other couple keeps everything
    assert db_session.query(Event).filter(Event.couple_id == cd).count() == 1
    assert db_session.query(Photo).filter(Photo.couple_id == cd).count() == 1
    assert db_session.query(Couple).filter(Couple.id == cd).first() is not None
    assert db_session.query(User).filter(User.id == carol.id).first().couple_id == cd

def test_unmatch_by_either_partner(db_session, test_user, test_partner, test_couple):
    """Test the receiver side can dissolve the pairing too"""
    purge = unmatch_partner(db_session, test_partner.id)

    assert purge.couple_id == test_couple.id
    db_session.expire_all()
    _assert_unlinked(db_session.query(User).filter(User.id == test_user.id).first())
    _assert_unlinked(db_session.query(User).filter(User.id == test_partner.id).first())

def test_unmatch_without_partner_is_noop(db_session, test_user):
    """Test unmatching an unmatched user succeeds without side effects"""
    assert unmatch_partner(db_session, test_user.id) is None
    assert db_session.query(CouplePurge).count() == 0

def test_unmatch_twice_is_idempotent(db_session, test_user, test_partner, test_couple):
    """Test a retried unmatch is a no-op success"""
    unmatch_partner(db_session, test_user.id)
    assert unmatch_partner(db_session, test_user.id) is None
    assert unmatch_partner(db_session, test_partner.id) is None
    assert db_session.query(CouplePurge).count() == 1

def test_unmatch_unknown_user(db_session):
    with pytest.raises(HTTPException) as excinfo:
        unmatch_partner(db_session, "missing")
    assert excinfo.value.status_code == 404

def test_unmatch_half_linked_user(db_session, test_user, test_partner):
    """Test a user whose record lost its couple_id is still cleared via the partner id"""
    test_user.partner_id = test_partner.id
    test_user.partner_name = test_partner.name
    db_session.commit()

    purge = unmatch_partner(db_session, test_user.id)

    assert purge.couple_id == generate_couple_id(test_user.id, test_partner.id)
    db_session.refresh(test_user)
    _assert_unlinked(test_user)

def test_purge_failure_is_surfaced_and_resumable(db_session, test_user, test_partner, test_couple):
    """Test a store failure mid-purge rolls back, reports context and can be resumed"""
    _add_shared_data(db_session, test_couple.id, test_user)

    def failing_photo_purge(db, couple_id):
        raise OperationalError("DELETE FROM photos", {}, Exception("disk I/O error"))

    with patch.dict(purge_service.SHARED_DATA_PURGERS, {"photos": failing_photo_purge}):
        with pytest.raises(InternalError) as excinfo:
            unmatch_partner(db_session, test_user.id)

    assert excinfo.value.status_code == 500
    assert excinfo.value.context["couple_id"] == test_couple.id
    assert excinfo.value.context["step"] == "purge_photos"
    assert test_couple.id in str(excinfo.value)

    # Nothing was half-applied
    db_session.expire_all()
    assert db_session.query(User).filter(User.id == test_user.id).first().couple_id == test_couple.id
    assert db_session.query(User).filter(User.id == test_partner.id).first().couple_id == test_couple.id
    assert db_session.query(Event).filter(Event.couple_id == test_couple.id).count() == 2

    # The intent row stays open until the purge is finished
    pending = get_incomplete_purges(db_session)
    assert [p.couple_id for p in pending] == [test_couple.id]

    completed = resume_incomplete_purges(db_session)

    assert len(completed) == 1
    assert completed[0].deleted_counts == {"events": 2, "photos": 3}
    assert get_incomplete_purges(db_session) == []
    db_session.expire_all()
    _assert_unlinked(db_session.query(User).filter(User.id == test_user.id).first())
    _assert_unlinked(db_session.query(User).filter(User.id == test_partner.id).first())
    assert db_session.query(Photo).count() == 0

def test_resume_continues_past_a_failing_purge(db_session, user_factory, test_user, test_partner, test_couple):
    """Test one purge that keeps failing does not hold back the others"""
    carol = user_factory("carol@example.com", "Carol")
    dave = user_factory("dave@example.com", "Dave")
    stuck_couple = generate_couple_id(carol.id, dave.id)
    now = datetime.utcnow()
    db_session.add(CouplePurge(couple_id=stuck_couple, requested_by=carol.id, requested_at=now - timedelta(minutes=5)))
    db_session.add(CouplePurge(couple_id=test_couple.id, requested_by=test_user.id, requested_at=now))
    db_session.commit()
    _add_shared_data(db_session, test_couple.id, test_user)

    def photo_purge_failing_for_stuck_couple(db, couple_id):
        if couple_id == stuck_couple:
            raise OperationalError("DELETE FROM photos", {}, Exception("disk I/O error"))
        return photo_service.delete_by_couple_id(db, couple_id)

    with patch.dict(purge_service.SHARED_DATA_PURGERS, {"photos": photo_purge_failing_for_stuck_couple}):
        completed = resume_incomplete_purges(db_session)

    assert [p.couple_id for p in completed] == [test_couple.id]
    assert [p.couple_id for p in get_incomplete_purges(db_session)] == [stuck_couple]
    db_session.expire_all()
    _assert_unlinked(db_session.query(User).filter(User.id == test_partner.id).first())
    assert db_session.query(Photo).filter(Photo.couple_id == test_couple.id).count() == 0

def test_startup_resumes_interrupted_purges(db_session, startup_on_test_db, test_user, test_partner, test_couple):
    """Test application startup finishes open purges in the configured database"""
    db_session.add(CouplePurge(couple_id=test_couple.id, requested_by=test_user.id))
    db_session.commit()

    with TestClient(main.app):
        pass

    db_session.expire_all()
    assert get_incomplete_purges(db_session) == []
    _assert_unlinked(db_session.query(User).filter(User.id == test_user.id).first())

def test_startup_survives_a_failing_purge(db_session, startup_on_test_db, test_user, test_couple):
    """Test the application still starts when an open purge cannot be finished"""
    db_session.add(CouplePurge(couple_id=test_couple.id, requested_by=test_user.id))
    db_session.commit()

    def failing_photo_purge(db, couple_id):
        raise OperationalError("DELETE FROM photos", {}, Exception("disk I/O error"))

    with patch.dict(purge_service.SHARED_DATA_PURGERS, {"photos": failing_photo_purge}):
        with TestClient(main.app):
            pass

    assert [p.couple_id for p in get_incomplete_purges(db_session)] == [test_couple.id]

def test_rematch_blocked_while_purge_unfinished(db_session, test_user, test_partner, test_couple):
    """Test that a couple cannot re-form before its previous purge completes"""
    db_session.add(CouplePurge(couple_id=test_couple.id, requested_by=test_user.id))
    for user in (test_user, test_partner):
        user.partner_id = None
        user.partner_name = None
        user.couple_id = None
    db_session.query(Couple).delete()
    db_session.commit()

    request = send_match_request(
        db_session,
        test_user.id,
        MatchRequestCreate(receiver_email=test_partner.email, anniversary_date=date(2024, 5, 1))
    )
    with pytest.raises(HTTPException) as excinfo:
        respond_to_match_request(db_session, request.id, test_partner.id, MatchRequestRespond(action="accept"))
    assert excinfo.value.status_code == 409

def test_rematch_after_unmatch(db_session, test_user, test_partner):
    """Test the same two users can match again once the old pairing is purged"""
    couple_id = _match(db_session, test_user, test_partner)
    unmatch_partner(db_session, test_user.id)

    again = _match(db_session, test_partner, test_user, anniversary=date(2025, 6, 1))

    assert again == couple_id
    db_session.refresh(test_user)
    assert test_user.couple_id == couple_id
    assert test_user.anniversary_date == date(2025, 6, 1)

# API layer tests
def test_unmatch_api(client, auth_headers, db_session, test_user, test_partner, test_couple):
    """Test unmatching through the API returns 204 and clears both users"""
    response = client.post("/api/v1/users/me/unmatch", headers=auth_headers(test_user))

    assert response.status_code == status.HTTP_204_NO_CONTENT
    partner = client.get(f"/api/v1/users/{test_partner.id}").json()
    assert partner["partner_id"] is None
    assert partner["couple_id"] is None

def test_unmatch_api_without_partner(client, auth_headers, test_user):
    response = client.post("/api/v1/users/me/unmatch", headers=auth_headers(test_user))
    assert response.status_code == status.HTTP_204_NO_CONTENT
