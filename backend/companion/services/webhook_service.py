"""
Companion Backend — Stripe Webhook Service
============================================

What:  Verifies, deduplicates and applies Stripe webhook events.
Why:   Stripe is the source of truth for subscription state and invoice
       payments; webhooks keep the local rows in step with it.
How:   Signature check → ledger lookup by event id → handler by event type.

Event Handling:
    customer.subscription.created   → ACTIVE
    customer.subscription.updated   → sync status and renews_at
    customer.subscription.deleted   → CANCELLED + cancelled_at
    invoice.payment_succeeded       → creator Earning (net of platform fee)
    invoice.payment_failed          → logged
    anything else                   → logged, marked ignored

Idempotency:
    Every event is recorded in `webhook_events`. A replay of an event that
    was already processed or ignored is acknowledged without side effects.
    A failed event stays in the ledger as `failed` and is re-run when
    Stripe retries it.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from companion.config import settings
from companion.exceptions import CompanionError, ValidationError
from companion.models.subscription import (
    Earning,
    EarningType,
    Subscription,
    SubscriptionStatus,
)
from companion.models.webhook_event import WebhookEvent, WebhookEventStatus
from companion.schemas.subscription import WebhookAck
from companion.services.booking_service import platform_fee
from companion.services.stripe_service import payment_gateway

logger = logging.getLogger(__name__)

# Stripe subscription.status → local status
STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "paused": SubscriptionStatus.PAUSED,
    "canceled": SubscriptionStatus.CANCELLED,
    "incomplete_expired": SubscriptionStatus.CANCELLED,
}


def _id_of(value: Any) -> Optional[str]:
    """Stripe fields may hold an id string or an expanded object."""
    if isinstance(value, dict):
        return value.get("id")
    return value or None


def _period_end(subscription: Dict[str, Any]) -> Optional[datetime]:
    ts = subscription.get("current_period_end")
    if ts is None:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            ts = items[0].get("current_period_end")
    if ts is None:
        return None
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)


def _invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
    subscription_id = _id_of(invoice.get("subscription"))
    if subscription_id:
        return subscription_id
    # Newer API versions nest it under parent.subscription_details
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return _id_of(details.get("subscription"))


class WebhookService:

    async def handle(self, db: AsyncSession, payload: bytes, signature: Optional[str]) -> WebhookAck:
        """
        Entry point for POST /api/stripe/webhook.

        Raises:
            ValidationError: missing/invalid signature or malformed payload (400)
        """
        if not signature:
            raise ValidationError(message="Missing stripe-signature header")
        event = payment_gateway.verify_webhook(payload, signature)

        event_id = event.get("id")
        event_type = event.get("type", "")
        if not event_id:
            raise ValidationError(message="Webhook event has no id")

        record = await db.scalar(select(WebhookEvent).where(WebhookEvent.event_id == event_id))
        if record is not None and record.status in (
            WebhookEventStatus.PROCESSED,
            WebhookEventStatus.IGNORED,
        ):
            logger.info("Duplicate webhook %s (%s) acknowledged", event_id, event_type)
            return WebhookAck(duplicate=True)

        if record is None:
            record = WebhookEvent(event_id=event_id, event_type=event_type, payload=event)
            db.add(record)
            await db.flush()

        obj = (event.get("data") or {}).get("object") or {}
        try:
            async with db.begin_nested():
                handled = await self._dispatch(db, event_type, obj)
        except (CompanionError, SQLAlchemyError) as e:
            logger.error("Webhook %s (%s) failed: %s", event_id, event_type, str(e))
            record.status = WebhookEventStatus.FAILED
            record.processing_error = str(e)
            # Keep the failure in the ledger; the raise below rolls back the request
            await db.commit()
            raise

        record.status = WebhookEventStatus.PROCESSED if handled else WebhookEventStatus.IGNORED
        record.processing_error = None
        record.processed_at = datetime.now(timezone.utc)
        await db.flush()
        return WebhookAck()

    async def _dispatch(self, db: AsyncSession, event_type: str, obj: Dict[str, Any]) -> bool:
        """Returns False when the event was logged and ignored."""
        if event_type == "customer.subscription.created":
            return await self._subscription_created(db, obj)
        if event_type == "customer.subscription.updated":
            return await self._subscription_updated(db, obj)
        if event_type == "customer.subscription.deleted":
            return await self._subscription_deleted(db, obj)
        if event_type == "invoice.payment_succeeded":
            return await self._payment_succeeded(db, obj)
        if event_type == "invoice.payment_failed":
            logger.warning(
                "Payment failed for invoice %s (subscription %s)",
                obj.get("id"),
                _invoice_subscription_id(obj),
            )
            return True
        logger.info("Unhandled webhook event type: %s", event_type)
        return False

    async def _find_subscription(self, db: AsyncSession, stripe_subscription_id: Optional[str]):
        if not stripe_subscription_id:
            return None
        subscription = await db.scalar(
            select(Subscription).where(Subscription.stripe_subscription_id == stripe_subscription_id)
        )
        if subscription is None:
            logger.warning("Webhook references unknown subscription %s", stripe_subscription_id)
        return subscription

    # ── Handlers ──────────────────────────────────────────────────────────

    async def _subscription_created(self, db: AsyncSession, obj: Dict[str, Any]) -> bool:
        subscription = await self._find_subscription(db, obj.get("id"))
        if subscription is None:
            return False
        subscription.status = SubscriptionStatus.ACTIVE
        await db.flush()
        return True

    async def _subscription_updated(self, db: AsyncSession, obj: Dict[str, Any]) -> bool:
        subscription = await self._find_subscription(db, obj.get("id"))
        if subscription is None:
            return False

        new_status = STATUS_MAP.get(obj.get("status", ""))
        if new_status is not None and new_status != subscription.status:
            logger.info(
                "Subscription %s status %s -> %s",
                subscription.id,
                subscription.status,
                new_status,
            )
            subscription.status = new_status
            if new_status == SubscriptionStatus.CANCELLED and subscription.cancelled_at is None:
                subscription.cancelled_at = datetime.now(timezone.utc)

        renews_at = _period_end(obj)
        if renews_at is not None:
            subscription.renews_at = renews_at
        await db.flush()
        return True

    async def _subscription_deleted(self, db: AsyncSession, obj: Dict[str, Any]) -> bool:
        subscription = await self._find_subscription(db, obj.get("id"))
        if subscription is None:
            return False
        subscription.status = SubscriptionStatus.CANCELLED
        subscription.cancelled_at = datetime.now(timezone.utc)
        await db.flush()
        return True

    async def _payment_succeeded(self, db: AsyncSession, invoice: Dict[str, Any]) -> bool:
        subscription = await self._find_subscription(db, _invoice_subscription_id(invoice))
        if subscription is None:
            return False

        invoice_id = invoice.get("id")
        if invoice_id:
            already = await db.scalar(select(Earning.id).where(Earning.stripe_invoice_id == invoice_id))
            if already is not None:
                logger.info("Earning for invoice %s already recorded", invoice_id)
                return True

        total = int(invoice.get("total") or 0)
        amount = total - platform_fee(total, settings.subscription_platform_fee_percent)
        db.add(
            Earning(
                creator_id=subscription.creator_id,
                type=EarningType.SUBSCRIPTION,
                amount_cents=amount,
                subscription_id=subscription.id,
                stripe_invoice_id=invoice_id,
                description=f"{subscription.tier} subscription",
            )
        )
        await db.flush()
        logger.info(
            "Recorded %d cents subscription earning for creator %s (invoice %s)",
            amount,
            subscription.creator_id,
            invoice_id,
        )
        return True


# ── Singleton Instance ────────────────────────────────────────────────────
webhook_service = WebhookService()
