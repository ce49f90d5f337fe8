"""
API v1 router initialization and setup.
"""
from fastapi import APIRouter
from .endpoints import availability, pricing, bookings, waitlist, catalog, users

api_router = APIRouter()

api_router.include_router(
    availability.router,
    prefix="/availability",
    tags=["availability"]
)

api_router.include_router(
    pricing.router,
    prefix="/pricing",
    tags=["pricing"]
)

api_router.include_router(
    bookings.router,
    prefix="/bookings",
    tags=["bookings"]
)

api_router.include_router(
    waitlist.router,
    prefix="/waitlist",
    tags=["waitlist"]
)

api_router.include_router(
    catalog.router,
    prefix="/catalog",
    tags=["catalog"]
)

api_router.include_router(
    users.router,
    prefix="/users",
    tags=["users"]
)
