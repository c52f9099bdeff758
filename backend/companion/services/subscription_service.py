"""
Companion Backend — Subscription Service
==========================================

What:  Monthly fan → creator subscriptions billed through Stripe.
Who:   POST /api/stripe/create-subscription[-with-payment],
       POST /api/subscriptions/cancel, GET /api/subscriptions/my-subscriptions.

Pricing (cents / month): BASIC 499, PREMIUM 999, VIP 2499.

Creation Flow:
    1. Validate creator, reject self-subscription and duplicates
       (an ACTIVE or PAUSED subscription to the same creator)
    2. Get or create the subscriber's Stripe customer
    3. (setup-intent path) attach the collected card as invoice default
    4. Stripe Product + Subscription with inline monthly price_data
    5. Store ACTIVE row; renews_at = period end, else now + 30 days
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from companion.exceptions import (
    CompanionError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from companion.models.subscription import Subscription, SubscriptionStatus, SubscriptionTier
from companion.models.user import User
from companion.schemas.subscription import SubscriptionListResponse, SubscriptionResponse
from companion.services.stripe_service import payment_gateway

logger = logging.getLogger(__name__)

DEFAULT_PERIOD = timedelta(days=30)


class SubscriptionService:

    async def _validate_new(
        self, db: AsyncSession, subscriber: User, creator_id: uuid.UUID, tier: str
    ) -> User:
        if tier not in SubscriptionTier.PRICING:
            raise ValidationError(message=f"Invalid tier '{tier}'", field="tier")

        creator = await db.get(User, creator_id)
        if creator is None or not creator.is_creator:
            raise NotFoundError(resource="creator", resource_id=str(creator_id))
        if creator.id == subscriber.id:
            raise ValidationError(message="Cannot subscribe to yourself", field="creator_id")

        existing = await db.scalar(
            select(Subscription.id).where(
                Subscription.subscriber_id == subscriber.id,
                Subscription.creator_id == creator.id,
                Subscription.status.in_(SubscriptionStatus.BLOCKING),
            )
        )
        if existing is not None:
            raise ConflictError(message="You already have an active subscription to this creator")
        return creator

    async def _ensure_customer(self, subscriber: User) -> str:
        customer_id = await payment_gateway.ensure_customer(
            subscriber.email, subscriber.name, existing_id=subscriber.stripe_customer_id
        )
        if subscriber.stripe_customer_id != customer_id:
            subscriber.stripe_customer_id = customer_id
        return customer_id

    async def _create(
        self,
        db: AsyncSession,
        subscriber: User,
        creator: User,
        tier: str,
        customer_id: str,
        payment_method_id: Optional[str],
    ) -> SubscriptionResponse:
        price_cents = SubscriptionTier.PRICING[tier]
        created = await payment_gateway.create_subscription(
            customer_id=customer_id,
            product_name=f"{creator.name or 'Creator'} - {tier} Tier",
            price_cents=price_cents,
            metadata={
                "creator_id": creator.id,
                "subscriber_id": subscriber.id,
                "tier": tier,
            },
            default_payment_method=payment_method_id,
        )

        subscription = Subscription(
            subscriber_id=subscriber.id,
            creator_id=creator.id,
            creator=creator,
            tier=tier,
            price_cents=price_cents,
            status=SubscriptionStatus.ACTIVE,
            stripe_subscription_id=created.id,
            renews_at=created.current_period_end or datetime.now(timezone.utc) + DEFAULT_PERIOD,
        )
        db.add(subscription)
        await db.flush()
        logger.info(
            "Subscription %s created: %s -> %s (%s, stripe=%s)",
            subscription.id,
            subscriber.id,
            creator.id,
            tier,
            created.id,
        )
        return SubscriptionResponse.model_validate(subscription)

    async def create(
        self,
        db: AsyncSession,
        subscriber: User,
        creator_id: uuid.UUID,
        tier: str,
        payment_method_id: Optional[str] = None,
    ) -> SubscriptionResponse:
        creator = await self._validate_new(db, subscriber, creator_id, tier)
        customer_id = await self._ensure_customer(subscriber)
        if payment_method_id:
            await payment_gateway.attach_payment_method(payment_method_id, customer_id)
        return await self._create(db, subscriber, creator, tier, customer_id, payment_method_id)

    async def create_with_payment(
        self,
        db: AsyncSession,
        subscriber: User,
        creator_id: uuid.UUID,
        tier: str,
        setup_intent_id: str,
    ) -> SubscriptionResponse:
        creator = await self._validate_new(db, subscriber, creator_id, tier)
        customer_id = await self._ensure_customer(subscriber)
        payment_method_id = await payment_gateway.payment_method_from_setup_intent(setup_intent_id)
        await payment_gateway.attach_payment_method(payment_method_id, customer_id)
        return await self._create(db, subscriber, creator, tier, customer_id, payment_method_id)

    async def cancel(self, db: AsyncSession, user: User, subscription_id: uuid.UUID) -> SubscriptionResponse:
        subscription = await db.get(Subscription, subscription_id)
        if subscription is None:
            raise NotFoundError(resource="subscription", resource_id=str(subscription_id))
        if subscription.subscriber_id != user.id:
            raise PermissionDeniedError(message="Only the subscriber can cancel this subscription")
        if subscription.status != SubscriptionStatus.ACTIVE:
            raise ConflictError(
                message=f"Subscription is already {subscription.status.lower()}",
                context={"status": subscription.status},
            )

        if subscription.stripe_subscription_id:
            try:
                await payment_gateway.cancel_subscription(subscription.stripe_subscription_id)
            except CompanionError as e:
                logger.warning(
                    "Stripe cancel failed for subscription %s: %s",
                    subscription.stripe_subscription_id,
                    e.message,
                )

        subscription.status = SubscriptionStatus.CANCELLED
        subscription.cancelled_at = datetime.now(timezone.utc)
        await db.flush()
        logger.info("Subscription %s cancelled by subscriber", subscription.id)
        return SubscriptionResponse.model_validate(subscription)

    async def list_active(self, db: AsyncSession, user: User) -> SubscriptionListResponse:
        result = await db.execute(
            select(Subscription)
            .where(
                Subscription.subscriber_id == user.id,
                Subscription.status == SubscriptionStatus.ACTIVE,
            )
            .order_by(Subscription.created_at.desc())
        )
        return SubscriptionListResponse(
            subscriptions=[SubscriptionResponse.model_validate(s) for s in result.scalars().all()]
        )


# ── Singleton Instance ────────────────────────────────────────────────────
subscription_service = SubscriptionService()
