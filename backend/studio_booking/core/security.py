"""
JWT verification for trainer-facing endpoints.

Tokens are issued by the identity provider in front of this service; the
`sub` claim carries the trainer id. `create_access_token` exists for tooling
and tests that need to mint a token with the shared secret.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.config import get_settings
from studio_booking.db.session import get_db
from studio_booking.models.trainer import Trainer

settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise _CREDENTIALS_EXCEPTION


async def get_current_trainer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Trainer:
    """Resolve the bearer token to a Trainer row. 401 on anything missing."""
    if credentials is None:
        raise _CREDENTIALS_EXCEPTION

    payload = decode_access_token(credentials.credentials)
    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        raise _CREDENTIALS_EXCEPTION

    trainer = await db.get(Trainer, int(subject))
    if trainer is None:
        raise _CREDENTIALS_EXCEPTION
    return trainer
