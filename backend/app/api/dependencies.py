from typing import Optional

from fastapi import Header, HTTPException, status


async def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity, set by the auth gateway after validating the access token"""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return x_user_id
