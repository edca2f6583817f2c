from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import List, Optional
from datetime import date, datetime

from backend.app.models.models import MatchRequestStatus

class MatchRequestCreate(BaseModel):
    receiver_email: EmailStr
    anniversary_date: date
    message: Optional[str] = Field(None, max_length=500)

class MatchRequestRespond(BaseModel):
    # Validated by the service so unknown tokens surface as 400, not 422
    action: str
    anniversary_date: Optional[date] = None  # Overrides the sender's proposal on accept

class MatchRequestResponse(BaseModel):
    id: str
    sender_id: str
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None
    receiver_id: str
    receiver_email: str
    anniversary_date: date
    message: Optional[str] = None
    status: MatchRequestStatus
    created_at: datetime
    updated_at: datetime
    responded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class MatchRequestListResponse(BaseModel):
    match_requests: List[MatchRequestResponse]
    total: int
    page: int
    limit: int
