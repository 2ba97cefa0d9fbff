"""
Trainer booking endpoints.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.security import get_current_trainer
from studio_booking.db.session import get_db
from studio_booking.models.trainer import Trainer
from studio_booking.schemas.booking import (
    BookingCancelResponse,
    BookingCompleteRequest,
    BookingCompleteResponse,
    BookingCreate,
    BookingResponse,
    BookingUpdate,
)
from studio_booking.services import booking_service

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.get("/", response_model=list[BookingResponse])
async def list_bookings(
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    client_id: Optional[int] = Query(default=None, alias="clientId"),
    trainer: Trainer = Depends(get_current_trainer),
    db: AsyncSession = Depends(get_db),
):
    """List the studio's bookings. Soft-holds past their expiry show as cancelled."""
    return await booking_service.list_bookings(
        db, trainer.studio_id, start_date, end_date, status_filter, client_id
    )


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    trainer: Trainer = Depends(get_current_trainer),
    db: AsyncSession = Depends(get_db),
):
    """
    Reserve a slot on a trainer's calendar.

    Rejected with 409 when the slot overlaps an active booking or falls
    outside the studio's opening hours.
    """
    return await booking_service.create_booking(db, trainer, booking_data)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    trainer: Trainer = Depends(get_current_trainer),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.get_booking(db, booking_id, trainer.studio_id)


@router.put("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: int,
    booking_data: BookingUpdate,
    trainer: Trainer = Depends(get_current_trainer),
    db: AsyncSession = Depends(get_db),
):
    """Reschedule, reassign, annotate, or confirm a soft-hold."""
    return await booking_service.update_booking(db, booking_id, trainer.studio_id, booking_data)


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def delete_booking(
    booking_id: int,
    hard_delete: bool = Query(default=False, alias="hardDelete"),
    trainer: Trainer = Depends(get_current_trainer),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking (default) or remove it entirely with hardDelete=true."""
    if hard_delete:
        refunded = await booking_service.delete_booking(db, booking_id, trainer.studio_id)
        return BookingCancelResponse(
            message="Booking deleted",
            booking_id=booking_id,
            status="deleted",
            credits_refunded=refunded,
        )

    booking, refunded = await booking_service.cancel_booking(db, booking_id, trainer.studio_id)
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking_id=booking.id,
        status=booking.status,
        credits_refunded=refunded,
    )


@router.post("/{booking_id}/check-in", response_model=BookingResponse)
async def check_in(
    booking_id: int,
    trainer: Trainer = Depends(get_current_trainer),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.check_in(db, booking_id, trainer.studio_id)


@router.post("/{booking_id}/complete", response_model=BookingCompleteResponse)
async def complete_booking(
    booking_id: int,
    body: Optional[BookingCompleteRequest] = None,
    trainer: Trainer = Depends(get_current_trainer),
    db: AsyncSession = Depends(get_db),
):
    """
    Complete the session and charge the client's credits.

    A credit shortfall does not block completion; the response reports
    whether the deduction happened.
    """
    booking, credits = await booking_service.complete(
        db, booking_id, trainer.studio_id, body.session_id if body else None
    )
    return BookingCompleteResponse(booking=BookingResponse.model_validate(booking), credits=credits)
