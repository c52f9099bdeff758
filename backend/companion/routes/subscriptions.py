"""
Companion Backend — Subscription, Stripe Connect & Webhook Routes
===================================================================

What:  Creating and cancelling subscriptions, Connect onboarding for
       creator payouts, and the Stripe webhook receiver.

Webhook Notes:
    The handler reads the raw request body: the signature is computed over
    the exact bytes Stripe sent, so the body must not be parsed first.
    The path is excluded from rate limiting.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from companion.database import get_db_session
from companion.models.user import User
from companion.schemas.common import ErrorResponse
from companion.schemas.subscription import (
    ConnectAccountResponse,
    ConnectCallbackRequest,
    ConnectUrlResponse,
    SubscriptionCancelRequest,
    SubscriptionCreateRequest,
    SubscriptionListResponse,
    SubscriptionResponse,
    SubscriptionWithPaymentRequest,
    WebhookAck,
)
from companion.security import get_current_user
from companion.services.connect_service import connect_service
from companion.services.subscription_service import subscription_service
from companion.services.webhook_service import webhook_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Subscriptions"])

_CREATE_RESPONSES = {
    402: {"description": "Card declined", "model": ErrorResponse},
    404: {"description": "Creator not found", "model": ErrorResponse},
    409: {"description": "Already subscribed", "model": ErrorResponse},
    502: {"description": "Stripe error", "model": ErrorResponse},
}


@router.post(
    "/stripe/create-subscription",
    response_model=SubscriptionResponse,
    responses=_CREATE_RESPONSES,
    summary="Subscribe to a creator",
)
async def create_subscription(
    body: SubscriptionCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SubscriptionResponse:
    return await subscription_service.create(
        db, user, body.creator_id, body.tier, payment_method_id=body.payment_method_id
    )


@router.post(
    "/stripe/create-subscription-with-payment",
    response_model=SubscriptionResponse,
    responses=_CREATE_RESPONSES,
    summary="Subscribe using a card collected by a SetupIntent",
)
async def create_subscription_with_payment(
    body: SubscriptionWithPaymentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SubscriptionResponse:
    return await subscription_service.create_with_payment(
        db, user, body.creator_id, body.tier, body.setup_intent_id
    )


@router.post(
    "/subscriptions/cancel",
    response_model=SubscriptionResponse,
    responses={
        403: {"description": "Not the subscriber", "model": ErrorResponse},
        409: {"description": "Subscription is not active", "model": ErrorResponse},
    },
    summary="Cancel a subscription",
)
async def cancel_subscription(
    body: SubscriptionCancelRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SubscriptionResponse:
    return await subscription_service.cancel(db, user, body.subscription_id)


@router.get(
    "/subscriptions/my-subscriptions",
    response_model=SubscriptionListResponse,
    summary="My active subscriptions",
)
async def my_subscriptions(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SubscriptionListResponse:
    return await subscription_service.list_active(db, user)


# ── Stripe Connect ────────────────────────────────────────────────────────


@router.get(
    "/stripe/connect-url",
    response_model=ConnectUrlResponse,
    responses={503: {"description": "Connect not configured", "model": ErrorResponse}},
    summary="Stripe Connect authorize URL",
)
async def connect_url(user: User = Depends(get_current_user)) -> ConnectUrlResponse:
    return connect_service.authorize_url(user)


@router.post(
    "/stripe/connect-callback",
    response_model=ConnectAccountResponse,
    responses={400: {"description": "State mismatch", "model": ErrorResponse}},
    summary="Complete Stripe Connect onboarding",
)
async def connect_callback(
    body: ConnectCallbackRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ConnectAccountResponse:
    return await connect_service.complete(db, user, body.code, body.state)


@router.post(
    "/stripe/dev-skip",
    response_model=ConnectAccountResponse,
    responses={403: {"description": "Development only", "model": ErrorResponse}},
    summary="Store a mock Connect account (development)",
)
async def dev_skip(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ConnectAccountResponse:
    return await connect_service.dev_skip(db, user)


# ── Webhooks ──────────────────────────────────────────────────────────────


@router.post(
    "/stripe/webhook",
    response_model=WebhookAck,
    responses={400: {"description": "Invalid payload or signature", "model": ErrorResponse}},
    summary="Stripe webhook receiver",
)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> WebhookAck:
    payload = await request.body()
    return await webhook_service.handle(db, payload, stripe_signature)
