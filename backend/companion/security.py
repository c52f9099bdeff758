"""
Companion Backend — Password Hashing, Tokens & Auth Dependencies
==================================================================

What:  bcrypt password hashing (passlib), HS256 bearer tokens (python-jose)
       and the FastAPI dependencies that resolve the calling user.
Who:   Auth service (hash/verify/issue), every protected route (dependencies).

Token Claims:
    sub: user id (UUID string)
    rol: role at issue time (informational; the DB row is authoritative)
    exp: expiry
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from companion.config import settings
from companion.database import get_db_session
from companion.exceptions import AuthenticationError, PermissionDeniedError
from companion.models.user import User, UserStatus

logger = logging.getLogger(__name__)

# ── Password hashing ──────────────────────────────────────────────────────
pwd_context = CryptContext(
    schemes=["bcrypt_sha256", "bcrypt"],
    deprecated="auto",
)

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


# ── JWT create/verify ─────────────────────────────────────────────────────

def create_access_token(user: User, expires_minutes: Optional[int] = None) -> str:
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    payload = {
        "sub": str(user.id),
        "rol": user.role,
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> uuid.UUID:
    """
    Return the user id carried by `token`.

    Raises:
        AuthenticationError for bad signatures, expired tokens or missing claims
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return uuid.UUID(payload["sub"])
    except (JWTError, KeyError, ValueError, TypeError):
        raise AuthenticationError(message="Invalid or expired token")


# ── Dependencies ──────────────────────────────────────────────────────────

async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> Optional[User]:
    """The caller if a valid bearer token was sent, otherwise None."""
    if credentials is None:
        return None
    try:
        user_id = decode_access_token(credentials.credentials)
    except AuthenticationError:
        return None
    return await db.get(User, user_id)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    if credentials is None:
        raise AuthenticationError()
    user_id = decode_access_token(credentials.credentials)
    user = await db.get(User, user_id)
    if user is None:
        logger.info("Token for unknown user %s rejected", user_id)
        raise AuthenticationError()
    if user.status == UserStatus.SUSPENDED:
        raise PermissionDeniedError(message="Account suspended")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise PermissionDeniedError(message="Admin access required")
    return user
