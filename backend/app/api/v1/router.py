"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import matching, pricing, notifications

router = APIRouter()

# Parcel/trip matching
router.include_router(matching.router)

# Delivery pricing
router.include_router(pricing.router)

# In-app notifications
router.include_router(notifications.router)
