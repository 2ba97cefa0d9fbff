"""
Client credit endpoints: package assignment and balance.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.security import get_current_trainer
from studio_booking.db.session import get_db
from studio_booking.models.trainer import Trainer
from studio_booking.schemas.package import ClientPackageResponse, CreditSummary, PackageAssign
from studio_booking.services import credit_service

router = APIRouter(prefix="/clients", tags=["Clients"])


@router.post(
    "/{client_id}/packages",
    response_model=ClientPackageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_package(
    client_id: int,
    package_data: PackageAssign,
    trainer: Trainer = Depends(get_current_trainer),
    db: AsyncSession = Depends(get_db),
):
    """Grant a package's session credits to a client."""
    return await credit_service.assign_package(
        db, client_id, package_data.package_id, trainer.studio_id, package_data.notes
    )


@router.get("/{client_id}/credits", response_model=CreditSummary)
async def get_credits(
    client_id: int,
    trainer: Trainer = Depends(get_current_trainer),
    db: AsyncSession = Depends(get_db),
):
    return await credit_service.get_credit_summary(db, client_id, trainer.studio_id)
