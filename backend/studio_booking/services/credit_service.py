"""
Credit ledger: session credits held in client packages.

CONCURRENCY STRATEGY: Guarded conditional UPDATE with retry
===========================================================

Problem:
  Two completions for the same client read sessions_used=9 of 10, both
  write 10... or both write 11 against a 10-credit package.

Solution:
  The charge is a single conditional UPDATE:

    UPDATE client_packages SET sessions_used = sessions_used + :n
    WHERE id = :id AND status = 'active' AND sessions_used = :seen
      AND sessions_total - sessions_used >= :n

  If rows_affected == 0, another writer got there first: re-read and retry
  (up to MAX_RETRY_ATTEMPTS). The CHECK constraint
  0 <= sessions_used <= sessions_total is the final safety net.

Idempotency:
  credit_usage.booking_id is UNIQUE. A booking with a usage row has been
  charged; a second deduct() returns success without writing.

Selection:
  Active packages ordered by soonest expiry (never-expiring last), then
  oldest first. The first package whose balance covers the whole amount is
  charged. Deductions are never split across packages.

Refunds:
  Reverse exactly the booking's usage row and void it (voided_at). A
  reversal that cannot be applied means the ledger is inconsistent, which
  is an error, not a shortfall.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.config import get_settings
from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_credit_operation
from studio_booking.db.base import utcnow
from studio_booking.models.client import Client
from studio_booking.models.package import ClientPackage, CreditUsage, Package, PackageStatus
from studio_booking.schemas.booking import CreditDeductionResponse
from studio_booking.schemas.notification import LowCredits
from studio_booking.schemas.package import CreditSummary
from studio_booking.services.notification_service import emit

logger = get_logger(__name__)
settings = get_settings()

MAX_RETRY_ATTEMPTS = 3


async def _expire_packages(db: AsyncSession, client_id: int) -> None:
    await db.execute(
        update(ClientPackage)
        .where(
            ClientPackage.client_id == client_id,
            ClientPackage.status == PackageStatus.ACTIVE,
            ClientPackage.expires_at.is_not(None),
            ClientPackage.expires_at < utcnow(),
        )
        .values(status=PackageStatus.EXPIRED)
        .execution_options(synchronize_session="fetch")
    )


async def _active_packages(db: AsyncSession, client_id: int) -> list[ClientPackage]:
    result = await db.execute(
        select(ClientPackage)
        .where(
            ClientPackage.client_id == client_id,
            ClientPackage.status == PackageStatus.ACTIVE,
        )
        .order_by(
            ClientPackage.expires_at.is_(None),
            ClientPackage.expires_at.asc(),
            ClientPackage.created_at.asc(),
            ClientPackage.id.asc(),
        )
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_remaining_credits(db: AsyncSession, client_id: int) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(ClientPackage.sessions_total - ClientPackage.sessions_used), 0))
        .where(
            ClientPackage.client_id == client_id,
            ClientPackage.status == PackageStatus.ACTIVE,
        )
    )
    return int(result.scalar_one())


async def deduct(
    db: AsyncSession,
    client_id: int,
    booking_id: int,
    credits_required: int = 1,
) -> CreditDeductionResponse:
    """
    Charge credits for a completed booking. Never raises for a shortfall:
    the result says whether the charge happened.
    """
    existing = await db.execute(select(CreditUsage).where(CreditUsage.booking_id == booking_id))
    usage = existing.scalar_one_or_none()
    if usage is not None:
        if usage.voided_at is None:
            logger.info("credit_deduction_skipped", booking_id=booking_id, reason="already_deducted")
            record_credit_operation("deduct", "noop")
            return CreditDeductionResponse(
                success=True,
                reason="already_deducted",
                client_package_id=usage.client_package_id,
                remaining=usage.balance_after,
            )
        record_credit_operation("deduct", "noop")
        return CreditDeductionResponse(success=False, reason="already_refunded")

    await _expire_packages(db, client_id)

    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        packages = await _active_packages(db, client_id)
        if not packages:
            return _shortfall(client_id, booking_id, credits_required, "no_active_package")

        package = next((p for p in packages if p.sessions_remaining >= credits_required), None)
        if package is None:
            return _shortfall(client_id, booking_id, credits_required, "insufficient_credits")

        seen_used = package.sessions_used
        update_result = await db.execute(
            update(ClientPackage)
            .where(
                ClientPackage.id == package.id,
                ClientPackage.status == PackageStatus.ACTIVE,
                ClientPackage.sessions_used == seen_used,
                ClientPackage.sessions_total - ClientPackage.sessions_used >= credits_required,
            )
            .values(sessions_used=ClientPackage.sessions_used + credits_required)
            .execution_options(synchronize_session=False)
        )

        if update_result.rowcount == 0:
            logger.info(
                "credit_deduction_retry",
                client_package_id=package.id,
                booking_id=booking_id,
                attempt=attempt,
                reason="balance_changed",
            )
            continue

        remaining = package.sessions_total - seen_used - credits_required
        if remaining == 0:
            await db.execute(
                update(ClientPackage)
                .where(ClientPackage.id == package.id)
                .values(status=PackageStatus.EXHAUSTED)
                .execution_options(synchronize_session=False)
            )

        db.add(
            CreditUsage(
                client_package_id=package.id,
                booking_id=booking_id,
                credits_used=credits_required,
                balance_after=remaining,
                reason="booking",
                created_at=utcnow(),
            )
        )
        await db.flush()
        await db.refresh(package)

        logger.info(
            "credit_deducted",
            client_id=client_id,
            booking_id=booking_id,
            client_package_id=package.id,
            credits=credits_required,
            remaining=remaining,
            attempt=attempt,
        )
        record_credit_operation("deduct", "success")

        total_remaining = await get_remaining_credits(db, client_id)
        if total_remaining <= settings.LOW_CREDITS_THRESHOLD:
            await emit(LowCredits(client_id=client_id, remaining=total_remaining))

        return CreditDeductionResponse(
            success=True,
            client_package_id=package.id,
            remaining=remaining,
        )

    return _shortfall(client_id, booking_id, credits_required, "high_contention")


def _shortfall(
    client_id: int,
    booking_id: int,
    credits_required: int,
    reason: str,
) -> CreditDeductionResponse:
    logger.warning(
        "credit_deduction_failed",
        client_id=client_id,
        booking_id=booking_id,
        credits=credits_required,
        reason=reason,
    )
    record_credit_operation("deduct", "failure")
    return CreditDeductionResponse(success=False, reason=reason)


async def refund(db: AsyncSession, booking_id: int) -> int:
    """
    Reverse the booking's deduction, if any. Returns the credits restored
    (0 when there was nothing to reverse).
    """
    result = await db.execute(
        select(CreditUsage).where(
            CreditUsage.booking_id == booking_id,
            CreditUsage.voided_at.is_(None),
        )
    )
    usage = result.scalar_one_or_none()
    if usage is None:
        record_credit_operation("refund", "noop")
        return 0

    now = utcnow()
    update_result = await db.execute(
        update(ClientPackage)
        .where(
            ClientPackage.id == usage.client_package_id,
            ClientPackage.sessions_used >= usage.credits_used,
        )
        .values(
            sessions_used=ClientPackage.sessions_used - usage.credits_used,
            status=case(
                (
                    and_(
                        ClientPackage.status == PackageStatus.EXHAUSTED,
                        or_(ClientPackage.expires_at.is_(None), ClientPackage.expires_at > now),
                    ),
                    PackageStatus.ACTIVE,
                ),
                else_=ClientPackage.status,
            ),
        )
        .execution_options(synchronize_session=False)
    )

    if update_result.rowcount == 0:
        logger.error(
            "credit_refund_failed",
            booking_id=booking_id,
            client_package_id=usage.client_package_id,
            credits=usage.credits_used,
        )
        record_credit_operation("refund", "failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Credit refund could not be applied",
        )

    usage.voided_at = now
    await db.flush()

    package = await db.get(ClientPackage, usage.client_package_id)
    if package is not None:
        await db.refresh(package)

    logger.info(
        "credit_refunded",
        booking_id=booking_id,
        client_package_id=usage.client_package_id,
        credits=usage.credits_used,
    )
    record_credit_operation("refund", "success")
    return usage.credits_used


async def _get_client(db: AsyncSession, client_id: int, studio_id: int) -> Client:
    client = await db.get(Client, client_id)
    if not client or client.studio_id != studio_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Client {client_id} not found",
        )
    return client


async def assign_package(
    db: AsyncSession,
    client_id: int,
    package_id: int,
    studio_id: int,
    notes: Optional[str] = None,
) -> ClientPackage:
    """Grant a package's credits to a client of the same studio."""
    await _get_client(db, client_id, studio_id)

    package = await db.get(Package, package_id)
    if not package or package.studio_id != studio_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Package {package_id} not found",
        )
    if not package.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Package is no longer offered",
        )

    now = utcnow()
    expires_at: Optional[datetime] = None
    if package.validity_days:
        expires_at = now + timedelta(days=package.validity_days)

    client_package = ClientPackage(
        client_id=client_id,
        package_id=package.id,
        sessions_total=package.session_count,
        sessions_used=0,
        purchased_at=now,
        expires_at=expires_at,
        status=PackageStatus.ACTIVE,
        notes=notes,
    )
    db.add(client_package)
    await db.flush()
    await db.refresh(client_package)

    logger.info(
        "package_assigned",
        client_id=client_id,
        client_package_id=client_package.id,
        package_id=package.id,
        sessions=package.session_count,
    )
    return client_package


def credit_status(total: int) -> str:
    if total <= 0:
        return "none"
    if total <= 2:
        return "low"
    if total <= 5:
        return "medium"
    return "good"


async def get_credit_summary(db: AsyncSession, client_id: int, studio_id: int) -> CreditSummary:
    await _get_client(db, client_id, studio_id)
    await _expire_packages(db, client_id)

    packages = [p for p in await _active_packages(db, client_id) if p.sessions_remaining > 0]
    total = sum(p.sessions_remaining for p in packages)
    expiries = [p.expires_at for p in packages if p.expires_at is not None]

    return CreditSummary(
        client_id=client_id,
        total_credits=total,
        active_packages=len(packages),
        nearest_expiry=min(expiries) if expiries else None,
        credit_status=credit_status(total),
    )
