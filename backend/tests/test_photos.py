import pytest
from fastapi import status, HTTPException

from backend.app.models.models import Photo
from backend.app.schemas.photos import PhotoCreate
from backend.app.services.photo_service import (
    create_photo, get_photos_for_user, delete_photo, delete_by_couple_id
)

def _photo(title="Beach", **kwargs):
    return PhotoCreate(title=title, image_url=f"photos/{title.lower()}.jpg", **kwargs)

def test_create_photo_service(db_session, test_user, test_couple):
    photo = create_photo(db_session, test_user.id, _photo(tags=["summer", "sea"]))

    assert photo.couple_id == test_couple.id
    assert photo.image_url == "photos/beach.jpg"
    assert photo.tags == ["summer", "sea"]

def test_photos_shared_between_partners(db_session, test_user, test_partner, test_couple):
    create_photo(db_session, test_user.id, _photo("Beach"))
    create_photo(db_session, test_partner.id, _photo("Mountain"))

    assert {p.title for p in get_photos_for_user(db_session, test_partner.id)} == {"Beach", "Mountain"}
    assert len(get_photos_for_user(db_session, test_user.id)) == 2

def test_create_photo_unmatched_user(db_session, test_user):
    with pytest.raises(HTTPException) as excinfo:
        create_photo(db_session, test_user.id, _photo())
    assert excinfo.value.status_code == 409

def test_delete_photo_by_outsider(db_session, user_factory, test_user, test_couple):
    photo = create_photo(db_session, test_user.id, _photo())
    outsider = user_factory("eve@example.com", "Eve")

    with pytest.raises(HTTPException) as excinfo:
        delete_photo(db_session, photo.id, outsider.id)
    assert excinfo.value.status_code == 403

def test_delete_missing_photo(db_session, test_user):
    with pytest.raises(HTTPException) as excinfo:
        delete_photo(db_session, "missing", test_user.id)
    assert excinfo.value.status_code == 404

def test_delete_by_couple_id_returns_count(db_session, test_user, test_couple):
    for title in ("One", "Two", "Three"):
        create_photo(db_session, test_user.id, _photo(title))

    assert delete_by_couple_id(db_session, test_couple.id) == 3
    db_session.commit()
    assert db_session.query(Photo).count() == 0

def test_photos_api(client, auth_headers, test_user, test_partner, test_couple):
    response = client.post(
        "/api/v1/photos/",
        json={"title": "Beach", "image_url": "photos/beach.jpg", "date": "2024-07-14"},
        headers=auth_headers(test_user)
    )
    assert response.status_code == status.HTTP_201_CREATED
    photo_id = response.json()["id"]

    listed = client.get("/api/v1/photos/", headers=auth_headers(test_partner)).json()
    assert [p["id"] for p in listed] == [photo_id]

    deleted = client.delete(f"/api/v1/photos/{photo_id}", headers=auth_headers(test_partner))
    assert deleted.status_code == status.HTTP_204_NO_CONTENT

def test_photos_api_requires_caller(client):
    assert client.get("/api/v1/photos/").status_code == status.HTTP_401_UNAUTHORIZED
