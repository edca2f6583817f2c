from fastapi import APIRouter
from backend.app.api.v1 import users, couples, match_requests, events, photos

api_router = APIRouter()
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(couples.router, prefix="/couples", tags=["couples"])
api_router.include_router(match_requests.router, prefix="/match-requests", tags=["match-requests"])
api_router.include_router(events.router, prefix="/events", tags=["events"])
api_router.include_router(photos.router, prefix="/photos", tags=["photos"])
