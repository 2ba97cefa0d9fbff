"""
Public booking page endpoints. No authentication.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.db.session import get_db
from studio_booking.schemas.public import PublicBookingCreate, PublicBookingResponse
from studio_booking.services.public_booking_service import create_public_booking

router = APIRouter(prefix="/public", tags=["Public"])


@router.post("/bookings", response_model=PublicBookingResponse, status_code=status.HTTP_201_CREATED)
async def create_public_booking_endpoint(
    booking_data: PublicBookingCreate,
    db: AsyncSession = Depends(get_db),
):
    """
    Book a public service. Paid services are held as a soft-hold until
    checkout completes; free and intro sessions are confirmed immediately.
    """
    return await create_public_booking(db, booking_data)
