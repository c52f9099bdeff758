"""
Companion Backend — Auth Service
==================================

What:  Credentials registration, login and email verification.
Who:   /api/auth routes.

Registration Flow:
    1. Reject duplicate email (409)
    2. Store bcrypt hash, create a 24h VerificationToken
    3. Send the verification link (best-effort)
    4. Issue a bearer token so the user is signed in immediately
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from companion.config import settings
from companion.exceptions import (
    AuthenticationError,
    ConflictError,
    PermissionDeniedError,
    ValidationError,
)
from companion.models.user import User, UserStatus, VerificationToken
from companion.schemas.user import (
    EmailVerifiedResponse,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from companion.security import create_access_token, hash_password, verify_password
from companion.services.email_service import email_service

logger = logging.getLogger(__name__)


class AuthService:

    def _token_response(self, user: User) -> TokenResponse:
        return TokenResponse(
            access_token=create_access_token(user),
            expires_in=settings.access_token_expire_minutes * 60,
            user=UserResponse.model_validate(user),
        )

    async def get_user_by_email(self, db: AsyncSession, email: str):
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def register(self, db: AsyncSession, data: RegisterRequest) -> TokenResponse:
        if await self.get_user_by_email(db, data.email) is not None:
            raise ConflictError(message="An account with this email already exists")

        user = User(
            email=data.email,
            name=data.name.strip(),
            password_hash=hash_password(data.password),
        )
        db.add(user)
        await db.flush()

        token = VerificationToken(
            user_id=user.id,
            token=secrets.token_urlsafe(32),
            expires_at=datetime.now(timezone.utc)
            + timedelta(hours=settings.email_verification_ttl_hours),
        )
        db.add(token)
        await db.flush()
        logger.info("Registered user %s", user.id)

        verification_url = f"{settings.app_base_url}/auth/verify?token={token.token}"
        await email_service.send_verification_email(user.email, user.name or "there", verification_url)

        return self._token_response(user)

    async def login(self, db: AsyncSession, data: LoginRequest) -> TokenResponse:
        user = await self.get_user_by_email(db, data.email)
        if user is None or not verify_password(data.password, user.password_hash):
            raise AuthenticationError(message="Invalid email or password")
        if user.status == UserStatus.SUSPENDED:
            raise PermissionDeniedError(message="Account suspended")
        return self._token_response(user)

    async def verify_email(self, db: AsyncSession, token: str) -> EmailVerifiedResponse:
        """
        Consume a verification token.

        Expired tokens are deleted as well, so a stale link can't be retried.
        """
        if not token:
            raise ValidationError(message="Verification token is required", field="token")

        result = await db.execute(select(VerificationToken).where(VerificationToken.token == token))
        record = result.scalar_one_or_none()
        if record is None:
            raise ValidationError(message="Invalid verification token", field="token")

        if record.expires_at < datetime.now(timezone.utc):
            await db.delete(record)
            # Commit now: the error below rolls back the request transaction
            await db.commit()
            raise ValidationError(message="Verification token has expired", field="token")

        user = await db.get(User, record.user_id)
        user.email_verified_at = datetime.now(timezone.utc)
        await db.delete(record)
        await db.flush()
        logger.info("Email verified for user %s", user.id)

        return EmailVerifiedResponse(message="Email verified successfully", email=user.email)


# ── Singleton Instance ────────────────────────────────────────────────────
auth_service = AuthService()
