"""
Companion Backend — Stripe Payment Gateway
============================================

What:  Concrete PaymentGateway backed by the official `stripe` SDK.
Why:   Stripe handles customers, manual-capture holds for bookings,
       subscriptions, Connect payouts and signed webhooks.
How:   Every SDK call runs in a worker thread (the SDK is synchronous),
       wrapped in tenacity retries for transient failures and guarded by
       a circuit breaker.
Who:   Singleton `payment_gateway`, used by booking, subscription, connect
       and webhook services.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter, only for errors
       that can succeed on a second try (connection problems, 429s)
    2. Circuit breaker: after N consecutive provider failures, fail fast
       with 503 instead of making every request wait on Stripe timeouts
    3. Card declines and invalid requests are client problems. They are
       never retried and never trip the breaker.

Error Mapping:
    stripe.CardError            → PaymentRequiredError (402)
    stripe.InvalidRequestError  → ValidationError (400)
    other stripe.StripeError    → PaymentProviderError (502)
    circuit open                → CircuitBreakerOpenError (503)
"""

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import stripe
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)
from tenacity.wait import wait_base

from companion.config import settings
from companion.exceptions import (
    CircuitBreakerOpenError,
    PaymentProviderError,
    PaymentRequiredError,
    ValidationError,
)
from companion.services.payment_base import (
    CreatedSubscription,
    PaymentGateway,
    PaymentHold,
    PaymentIntentState,
)

logger = logging.getLogger(__name__)

# Errors worth a second attempt
TRANSIENT_ERRORS = (stripe.APIConnectionError, stripe.RateLimitError)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Implements the circuit breaker pattern to prevent cascade failures.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow ONE request through
            → Other calls are rejected until that request finishes
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Card declines and invalid requests mean Stripe answered, so they count
    as successes for the breaker.

    Thread Safety:
        Not thread-safe (plain counters). uvicorn async workers run the
        event loop in one thread; SDK calls run in threads but the breaker
        is only touched from the loop.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None
        self.trial_in_flight = False

    def can_execute(self) -> bool:
        """
        Check if a request is allowed through the circuit breaker.

        Raises:
            CircuitBreakerOpenError if circuit is OPEN and recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                self.trial_in_flight = True
                return True
            remaining = max(int(self.recovery_timeout - elapsed), 1)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        # HALF_OPEN: only the trial request goes through until it reports back
        if self.trial_in_flight:
            raise CircuitBreakerOpenError(recovery_time=1)
        self.trial_in_flight = True
        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None
        self.trial_in_flight = False

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()
        self.trial_in_flight = False

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════

def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a StripeObject or plain dict."""
    if obj is None:
        return default
    try:
        value = obj[name]
    except (KeyError, TypeError):
        return default
    return default if value is None else value


def _from_timestamp(ts: Optional[int]) -> Optional[datetime]:
    if ts is None:
        return None
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)


def _stringify(metadata: Dict[str, Any]) -> Dict[str, str]:
    # Stripe metadata values must be strings
    return {k: str(v) for k, v in metadata.items() if v is not None}


# ══════════════════════════════════════════════════════════════════════════
# Stripe Gateway
# ══════════════════════════════════════════════════════════════════════════

class StripeGateway(PaymentGateway):
    """
    Stripe implementation of PaymentGateway.

    Error Handling Chain:
        SDK call fails transiently → tenacity retries (N attempts with backoff)
        → All retries fail → record circuit breaker failure → 502
        → Threshold reached → future calls rejected instantly (503)
        → Recovery timeout → one test call allowed (HALF_OPEN)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        wait: Optional[wait_base] = None,
        max_attempts: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.stripe_secret_key
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.stripe_webhook_secret
        )
        self.max_attempts = max_attempts or settings.retry_max_attempts
        self.wait = wait or wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        )
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )
        if self.api_key:
            stripe.api_key = self.api_key
        else:
            logger.warning("STRIPE_SECRET_KEY not set - payment calls will fail")

    @property
    def provider_name(self) -> str:
        return "stripe"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _call(self, operation: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Run one SDK call with retry, circuit breaker and error mapping.

        Args:
            operation: Short label used in logs and error context
            fn:        Synchronous SDK callable (e.g. stripe.PaymentIntent.create)
        """
        if not self.is_configured:
            raise PaymentProviderError(
                message="Payments are not configured",
                context={"operation": operation},
            )

        self.circuit_breaker.can_execute()
        start_time = time.time()

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                stop=stop_after_attempt(self.max_attempts),
                wait=self.wait,
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    result = await asyncio.to_thread(fn, *args, **kwargs)
        except stripe.CardError as e:
            self.circuit_breaker.record_success()
            logger.info("Stripe %s declined: %s", operation, e.code)
            raise PaymentRequiredError(
                message=e.user_message or "Your card was declined",
                context={"operation": operation, "code": e.code},
            )
        except stripe.InvalidRequestError as e:
            self.circuit_breaker.record_success()
            logger.warning("Stripe %s rejected request: %s", operation, e.user_message or str(e))
            raise ValidationError(
                message=e.user_message or "The payment request was invalid",
                context={"operation": operation, "param": e.param},
            )
        except stripe.StripeError as e:
            self.circuit_breaker.record_failure()
            logger.error("Stripe %s failed: %s", operation, str(e))
            raise PaymentProviderError(
                context={"operation": operation, "error_type": type(e).__name__},
            )

        self.circuit_breaker.record_success()
        logger.debug("Stripe %s completed in %.0fms", operation, (time.time() - start_time) * 1000)
        return result

    # ── Customers ─────────────────────────────────────────────────────────

    async def ensure_customer(
        self, email: str, name: Optional[str], existing_id: Optional[str] = None
    ) -> str:
        if existing_id:
            return existing_id
        customer = await self._call(
            "customer.create",
            stripe.Customer.create,
            email=email,
            name=name or email,
        )
        logger.info("Created Stripe customer %s", _field(customer, "id"))
        return _field(customer, "id")

    async def attach_payment_method(self, payment_method_id: str, customer_id: str) -> None:
        await self._call(
            "payment_method.attach",
            stripe.PaymentMethod.attach,
            payment_method_id,
            customer=customer_id,
        )
        await self._call(
            "customer.modify",
            stripe.Customer.modify,
            customer_id,
            invoice_settings={"default_payment_method": payment_method_id},
        )

    async def payment_method_from_setup_intent(self, setup_intent_id: str) -> str:
        setup_intent = await self._call(
            "setup_intent.retrieve", stripe.SetupIntent.retrieve, setup_intent_id
        )
        payment_method = _field(setup_intent, "payment_method")
        if not payment_method:
            raise ValidationError(
                message="Setup intent has no payment method attached",
                field="setup_intent_id",
            )
        # Expanded objects carry the id inside
        if not isinstance(payment_method, str):
            payment_method = _field(payment_method, "id")
        return payment_method

    # ── Booking Holds ─────────────────────────────────────────────────────

    async def create_booking_hold(
        self,
        amount_cents: int,
        customer_id: str,
        description: str,
        metadata: Dict[str, Any],
    ) -> PaymentHold:
        intent = await self._call(
            "payment_intent.create",
            stripe.PaymentIntent.create,
            amount=amount_cents,
            currency=settings.stripe_currency,
            customer=customer_id,
            capture_method="manual",
            description=description,
            metadata=_stringify(metadata),
        )
        return PaymentHold(
            id=_field(intent, "id"),
            client_secret=_field(intent, "client_secret"),
            status=_field(intent, "status", "requires_payment_method"),
        )

    def _intent_state(self, intent: Any) -> PaymentIntentState:
        return PaymentIntentState(
            id=_field(intent, "id"),
            status=_field(intent, "status"),
            amount=int(_field(intent, "amount", 0)),
            created=_from_timestamp(_field(intent, "created")) or datetime.now(timezone.utc),
        )

    async def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentState:
        intent = await self._call(
            "payment_intent.retrieve", stripe.PaymentIntent.retrieve, payment_intent_id
        )
        return self._intent_state(intent)

    async def capture_payment_intent(self, payment_intent_id: str) -> PaymentIntentState:
        intent = await self._call(
            "payment_intent.capture", stripe.PaymentIntent.capture, payment_intent_id
        )
        logger.info("Captured PaymentIntent %s", payment_intent_id)
        return self._intent_state(intent)

    async def cancel_payment_intent(self, payment_intent_id: str) -> None:
        await self._call(
            "payment_intent.cancel", stripe.PaymentIntent.cancel, payment_intent_id
        )
        logger.info("Cancelled PaymentIntent %s", payment_intent_id)

    # ── Payouts ───────────────────────────────────────────────────────────

    async def create_transfer(
        self, amount_cents: int, destination: str, metadata: Dict[str, Any]
    ) -> str:
        transfer = await self._call(
            "transfer.create",
            stripe.Transfer.create,
            amount=amount_cents,
            currency=settings.stripe_currency,
            destination=destination,
            metadata=_stringify(metadata),
        )
        return _field(transfer, "id")

    async def exchange_connect_code(self, code: str) -> str:
        response = await self._call(
            "oauth.token",
            stripe.OAuth.token,
            grant_type="authorization_code",
            code=code,
        )
        account_id = _field(response, "stripe_user_id")
        if not account_id:
            raise PaymentProviderError(
                message="Stripe did not return a connected account",
                context={"operation": "oauth.token"},
            )
        return account_id

    # ── Subscriptions ─────────────────────────────────────────────────────

    async def create_subscription(
        self,
        customer_id: str,
        product_name: str,
        price_cents: int,
        metadata: Dict[str, Any],
        default_payment_method: Optional[str] = None,
    ) -> CreatedSubscription:
        product = await self._call(
            "product.create",
            stripe.Product.create,
            name=product_name,
            metadata=_stringify(metadata),
        )
        params: Dict[str, Any] = {
            "customer": customer_id,
            "items": [
                {
                    "price_data": {
                        "currency": settings.stripe_currency,
                        "product": _field(product, "id"),
                        "unit_amount": price_cents,
                        "recurring": {"interval": "month"},
                    }
                }
            ],
            "metadata": _stringify(metadata),
        }
        if default_payment_method:
            params["default_payment_method"] = default_payment_method

        subscription = await self._call("subscription.create", stripe.Subscription.create, **params)

        # Newer API versions report the period on the subscription item
        period_end = _field(subscription, "current_period_end")
        if period_end is None:
            items = _field(_field(subscription, "items"), "data", [])
            if items:
                period_end = _field(items[0], "current_period_end")

        return CreatedSubscription(
            id=_field(subscription, "id"),
            status=_field(subscription, "status", "incomplete"),
            current_period_end=_from_timestamp(period_end),
        )

    async def cancel_subscription(self, subscription_id: str) -> None:
        await self._call("subscription.cancel", stripe.Subscription.cancel, subscription_id)
        logger.info("Cancelled Stripe subscription %s", subscription_id)

    # ── Webhooks ──────────────────────────────────────────────────────────

    def verify_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]:
        if not self.webhook_secret:
            raise ValidationError(message="Webhook secret is not configured")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError:
            raise ValidationError(message="Invalid webhook payload")
        except stripe.SignatureVerificationError:
            raise ValidationError(message="Invalid webhook signature")
        # Verified: handlers work with the plain JSON body
        return json.loads(payload)

    def circuit_state(self) -> str:
        return self.circuit_breaker.state


# ── Singleton Instance ────────────────────────────────────────────────────
payment_gateway = StripeGateway()
