"""
Trainer availability endpoints. Public: the booking page reads these.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.db.session import get_db
from studio_booking.schemas.availability import AvailabilityResponse
from studio_booking.services.availability_service import get_trainer_availability

router = APIRouter(prefix="/availability", tags=["Availability"])


@router.get("/{trainer_id}", response_model=AvailabilityResponse)
async def get_availability(
    trainer_id: int,
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    db: AsyncSession = Depends(get_db),
):
    """
    Free windows for a trainer between two dates (inclusive, studio-local).
    Served from Redis when cached.
    """
    return await get_trainer_availability(db, trainer_id, start_date, end_date)
