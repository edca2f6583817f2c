from pydantic import BaseModel, EmailStr, ConfigDict, Field
from typing import Optional
from datetime import date, datetime

class UserCreate(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(None, min_length=1, max_length=100)

class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)

class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    partner_id: Optional[str] = None
    partner_name: Optional[str] = None
    couple_id: Optional[str] = None
    matched_at: Optional[datetime] = None
    anniversary_date: Optional[date] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)  # Modern Pydantic v2 syntax
