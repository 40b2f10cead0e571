"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import booking_requests, cars, notifications

router = APIRouter()

router.include_router(cars.router)
router.include_router(booking_requests.router)
router.include_router(notifications.router)
