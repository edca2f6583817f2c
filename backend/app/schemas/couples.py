from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import date, datetime

class CoupleResponse(BaseModel):
    id: str
    partner_1_id: str
    partner_2_id: str
    matched_at: datetime
    anniversary_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)  # Modern Pydantic v2 syntax
