"""
Stripe Connect onboarding: builds the OAuth authorize URL, completes the
callback, and (development only) stores a mock account id.
"""

import logging
import time
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from companion.config import settings
from companion.exceptions import PermissionDeniedError, ServiceNotConfiguredError, ValidationError
from companion.models.user import User
from companion.schemas.subscription import ConnectAccountResponse, ConnectUrlResponse
from companion.services.stripe_service import payment_gateway

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://connect.stripe.com/oauth/authorize"


class ConnectService:

    def authorize_url(self, user: User) -> ConnectUrlResponse:
        if not settings.stripe_connect_client_id:
            raise ServiceNotConfiguredError(message="Stripe Connect is not configured")
        params = {
            "client_id": settings.stripe_connect_client_id,
            "response_type": "code",
            "scope": "read_write",
            "redirect_uri": f"{settings.app_base_url}/auth/stripe-connect",
            "state": str(user.id),
            "stripe_user[email]": user.email or "",
            "stripe_user[business_type]": "individual",
        }
        return ConnectUrlResponse(url=f"{AUTHORIZE_URL}?{urlencode(params)}")

    async def complete(self, db: AsyncSession, user: User, code: str, state: str) -> ConnectAccountResponse:
        if state != str(user.id):
            raise ValidationError(message="Invalid state parameter", field="state")

        account_id = await payment_gateway.exchange_connect_code(code)
        user.stripe_connect_id = account_id
        await db.flush()
        logger.info("User %s connected Stripe account %s", user.id, account_id)
        return ConnectAccountResponse(stripe_connect_id=account_id)

    async def dev_skip(self, db: AsyncSession, user: User) -> ConnectAccountResponse:
        if settings.environment != "development":
            raise PermissionDeniedError(message="Forbidden")
        user.stripe_connect_id = f"acct_mock_dev_bypass_{int(time.time() * 1000)}"
        await db.flush()
        logger.info("User %s skipped Stripe Connect (mock account)", user.id)
        return ConnectAccountResponse(stripe_connect_id=user.stripe_connect_id)


# ── Singleton Instance ────────────────────────────────────────────────────
connect_service = ConnectService()
