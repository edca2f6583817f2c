from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.schemas.couples import CoupleResponse
from backend.app.services.couple_service import get_couple_for_user
from backend.app.api.dependencies import get_current_user_id
from backend.app.database import get_db_session

router = APIRouter()

@router.get("/me", response_model=CoupleResponse)
async def get_my_couple_route(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session)
):
    """
    Get the couple the caller belongs to.
    
    - Returns the couple identifier, both partners and the anniversary date
    - Returns 404 if the caller is not matched
    """
    return get_couple_for_user(db, user_id)
