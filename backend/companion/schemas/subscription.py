"""
Subscription, Stripe Connect and webhook acknowledgement schemas.
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from companion.schemas.common import UserSummary

Tier = Literal["BASIC", "PREMIUM", "VIP"]


class SubscriptionCreateRequest(BaseModel):
    creator_id: uuid.UUID
    tier: Tier
    payment_method_id: Optional[str] = Field(
        default=None,
        description="Optional pm_… to attach and use as the default payment method",
    )


class SubscriptionWithPaymentRequest(BaseModel):
    creator_id: uuid.UUID
    tier: Tier
    setup_intent_id: str = Field(min_length=1, description="Confirmed seti_… from Stripe.js")


class SubscriptionCancelRequest(BaseModel):
    subscription_id: uuid.UUID


class SubscriptionResponse(BaseModel):
    id: uuid.UUID
    subscriber_id: uuid.UUID
    creator_id: uuid.UUID
    creator: Optional[UserSummary] = None
    tier: str
    price_cents: int
    status: str
    stripe_subscription_id: Optional[str] = None
    started_at: datetime
    renews_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SubscriptionListResponse(BaseModel):
    subscriptions: List[SubscriptionResponse]


# ── Stripe Connect ────────────────────────────────────────────────────────


class ConnectUrlResponse(BaseModel):
    url: str


class ConnectCallbackRequest(BaseModel):
    code: str = Field(min_length=1)
    state: str = Field(min_length=1)


class ConnectAccountResponse(BaseModel):
    success: bool = True
    stripe_connect_id: str


# ── Webhooks ──────────────────────────────────────────────────────────────


class WebhookAck(BaseModel):
    received: bool = True
    duplicate: bool = False
