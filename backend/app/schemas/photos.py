from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
import datetime as dt

class PhotoCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    image_url: str = Field(..., min_length=1)
    date: Optional[dt.date] = None
    location: Optional[str] = None
    tags: Optional[List[str]] = None

class PhotoResponse(BaseModel):
    id: str
    couple_id: str
    user_id: str
    title: str
    description: Optional[str] = None
    image_url: str
    date: Optional[dt.date] = None
    location: Optional[str] = None
    tags: Optional[List[str]] = None
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)
