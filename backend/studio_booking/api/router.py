"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from studio_booking.api.routes import availability, bookings, clients, payments, public

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(bookings.router)
api_router.include_router(public.router)
api_router.include_router(availability.router)
api_router.include_router(clients.router)
api_router.include_router(payments.router)
