"""
API v1 router initialization and setup.
"""
from fastapi import APIRouter
from .endpoints import reminders, notifications

api_router = APIRouter()

api_router.include_router(
    reminders.router,
    prefix="/reminders",
    tags=["reminders"]
)

api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=["notifications"]
)
