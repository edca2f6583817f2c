from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List

from backend.app.schemas.photos import PhotoCreate, PhotoResponse
from backend.app.services.photo_service import create_photo, get_photos_for_user, delete_photo
from backend.app.api.dependencies import get_current_user_id
from backend.app.database import get_db_session

router = APIRouter()

@router.post("/", response_model=PhotoResponse, status_code=status.HTTP_201_CREATED)
async def create_photo_route(
    photo_data: PhotoCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session)
):
    """
    Add a photo to the couple's shared album.
    
    - Returns 409 if the caller is not matched
    """
    return create_photo(db, user_id, photo_data)

@router.get("/", response_model=List[PhotoResponse])
async def get_photos_route(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session)
):
    """
    List the photos of the caller's couple.
    
    - Returns an empty list if the caller is not matched
    """
    return get_photos_for_user(db, user_id)

@router.delete("/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_photo_route(
    photo_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session)
):
    """
    Delete a photo of the caller's couple.
    """
    delete_photo(db, photo_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
