"""Centralized API router registration.

Groups:
- Notification history: feed, unread count, read markers, manual create.
- Devices: push token registration.
"""

from fastapi import APIRouter

from app.routers import devices, notifications

api_router = APIRouter()

api_router.include_router(notifications.router)
api_router.include_router(devices.router)
