from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import Optional

from backend.app.schemas.match_requests import (
    MatchRequestCreate, MatchRequestRespond, MatchRequestResponse, MatchRequestListResponse
)
from backend.app.services.match_request_service import (
    send_match_request, get_match_request, get_sent_requests, get_received_requests,
    respond_to_match_request, cancel_match_request
)
from backend.app.api.dependencies import get_current_user_id
from backend.app.database import get_db_session

router = APIRouter()

@router.post("/", response_model=MatchRequestResponse, status_code=status.HTTP_201_CREATED)
async def send_match_request_route(
    request_data: MatchRequestCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session)
):
    """
    Send a match request to another user by email.
    
    - Returns 404 if nobody is registered with that email
    - Returns 400 when sending to yourself
    - Returns 409 if a pending request to the same user already exists
    """
    return send_match_request(db, user_id, request_data)

@router.get("/sent", response_model=MatchRequestListResponse)
async def get_sent_requests_route(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session)
):
    """
    List match requests sent by the caller, newest first.
    
    - Optional status filter (pending, accepted, declined)
    - limit defaults to the configured page size
    """
    return get_sent_requests(db, user_id, status, page, limit)

@router.get("/received", response_model=MatchRequestListResponse)
async def get_received_requests_route(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session)
):
    """
    List match requests received by the caller, newest first.
    
    - Optional status filter (pending, accepted, declined)
    - Each request includes the sender's name and email
    """
    return get_received_requests(db, user_id, status, page, limit)

@router.get("/{request_id}", response_model=MatchRequestResponse)
async def get_match_request_route(
    request_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session)
):
    """
    Get a match request the caller sent or received.
    """
    return get_match_request(db, request_id, user_id)

@router.post("/{request_id}/respond", response_model=MatchRequestResponse)
async def respond_to_match_request_route(
    request_id: str,
    respond_data: MatchRequestRespond,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session)
):
    """
    Accept or decline a pending match request.
    
    - Only the receiver may respond
    - action must be "accept" or "decline"
    - On accept, an anniversary_date in the body replaces the sender's proposal
    - Returns 409 if the request was already answered
    """
    return respond_to_match_request(db, request_id, user_id, respond_data)

@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_match_request_route(
    request_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session)
):
    """
    Cancel a pending match request the caller sent.
    
    - Returns 409 once the request has been answered
    """
    cancel_match_request(db, request_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
