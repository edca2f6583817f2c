from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
import datetime as dt

from backend.app.models.models import EventType

class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    date: dt.date
    time: Optional[str] = None
    location: Optional[str] = None
    event_type: EventType = EventType.OTHER

class EventResponse(BaseModel):
    id: str
    couple_id: str
    user_id: str
    title: str
    description: Optional[str] = None
    date: dt.date
    time: Optional[str] = None
    location: Optional[str] = None
    event_type: EventType
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)
