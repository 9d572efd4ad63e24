from fastapi import APIRouter

from parkb.api.v1 import availability, reservations, sessions, users

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(users.router)
api_router.include_router(availability.router)
api_router.include_router(reservations.router)
api_router.include_router(sessions.router)
