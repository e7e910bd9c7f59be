"""
Authenticated-principal resolution.

Tokens are issued by the external identity provider and verified here with
PyJWT. The `sub` claim carries the user id; the role comes from the user row
so a demoted or deactivated account takes effect immediately.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.config import get_settings
from booking_api.core.exceptions import AuthenticationError, ForbiddenError
from booking_api.core.logging import get_logger
from booking_api.db.session import get_db
from booking_api.models.user import User

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    user_id: uuid.UUID
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def owns(self, owner_id: uuid.UUID) -> bool:
        return self.user_id == owner_id


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a token the way the identity provider does. Used by dev tooling and tests."""
    settings = get_settings()
    payload = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload.update({"exp": expire, "iat": datetime.now(timezone.utc)})
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> uuid.UUID:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.PyJWTError:
        raise AuthenticationError("Invalid token")

    try:
        return uuid.UUID(str(payload["sub"]))
    except (KeyError, ValueError):
        raise AuthenticationError("Invalid token subject")


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    user_id = decode_access_token(credentials.credentials)
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        logger.warning("auth_rejected", user_id=str(user_id), reason="unknown_or_inactive")
        raise AuthenticationError("Account not found or deactivated")

    return Principal(user_id=user.id, role=user.role)


async def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise ForbiddenError("Administrator access required")
    return principal
