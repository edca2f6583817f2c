from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List

from backend.app.schemas.events import EventCreate, EventResponse
from backend.app.services.event_service import create_event, get_events_for_user, delete_event
from backend.app.api.dependencies import get_current_user_id
from backend.app.database import get_db_session

router = APIRouter()

@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_route(
    event_data: EventCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session)
):
    """
    Create an event shared with the caller's partner.
    
    - Returns 409 if the caller is not matched
    """
    return create_event(db, user_id, event_data)

@router.get("/", response_model=List[EventResponse])
async def get_events_route(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session)
):
    """
    List the events of the caller's couple.
    
    - Returns an empty list if the caller is not matched
    """
    return get_events_for_user(db, user_id)

@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event_route(
    event_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session)
):
    """
    Delete an event of the caller's couple.
    """
    delete_event(db, event_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
