"""
Public booking identity resolution.

A visitor on a studio's public page gives only an email. Clients are scoped
per studio, so the same person may already exist:

  1. as a client of this studio        -> reuse that row
  2. with a real account elsewhere     -> new row here, same account_id
     (clients added by hand elsewhere have no account and do not count)
  3. nowhere                           -> new guest client

has_existing_account tells the page whether to offer a login instead of
account creation.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.logging import get_logger
from studio_booking.models.client import Client

logger = get_logger(__name__)

PUBLIC_BOOKING_SOURCE = "public_booking"


async def resolve_public_client(
    db: AsyncSession,
    studio_id: int,
    email: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    phone: Optional[str] = None,
    invited_by: Optional[int] = None,
) -> tuple[Client, bool]:
    email = email.strip().lower()

    result = await db.execute(
        select(Client).where(Client.studio_id == studio_id, Client.email == email)
    )
    client = result.scalar_one_or_none()
    if client is not None:
        logger.info("public_client_reused", client_id=client.id, studio_id=studio_id)
        return client, not client.is_guest

    result = await db.execute(
        select(Client)
        .where(
            Client.email == email,
            Client.studio_id != studio_id,
            Client.is_guest.is_(False),
            Client.account_id.is_not(None),
        )
        .order_by(Client.created_at.asc(), Client.id.asc())
        .limit(1)
    )
    existing = result.scalar_one_or_none()

    if existing is not None:
        client = Client(
            studio_id=studio_id,
            account_id=existing.account_id,
            email=email,
            first_name=existing.first_name or first_name,
            last_name=existing.last_name or last_name,
            phone=existing.phone or phone,
            is_guest=False,
            source=PUBLIC_BOOKING_SOURCE,
            invited_by=invited_by,
        )
    else:
        client = Client(
            studio_id=studio_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            is_guest=True,
            source=PUBLIC_BOOKING_SOURCE,
            invited_by=invited_by,
        )

    db.add(client)
    await db.flush()
    await db.refresh(client)

    logger.info(
        "public_client_created",
        client_id=client.id,
        studio_id=studio_id,
        is_guest=client.is_guest,
        linked_client_id=existing.id if existing is not None else None,
    )
    return client, existing is not None
