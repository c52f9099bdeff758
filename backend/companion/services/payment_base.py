"""
Companion Backend — Abstract Payment Gateway Interface
========================================================

What:  Defines the contract every payments provider must implement.
Why:   Booking and subscription services depend on this interface, not on
       the Stripe SDK, so the business rules can be tested with a mock
       gateway and never touch the network.
How:   Python ABC with abstract async methods. Results come back as small
       dataclasses instead of provider objects.
Who:   Implemented by StripeGateway (stripe_service.py).
When:  Every charge, hold, capture, payout and subscription call.

Interface Design:
    Amounts are integer cents. Timestamps are timezone-aware UTC datetimes.
    Provider failures surface as CompanionError subclasses
    (PaymentRequiredError, PaymentProviderError, CircuitBreakerOpenError),
    never as SDK exceptions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class PaymentHold:
    """A manual-capture PaymentIntent created for a booking."""
    id: str
    client_secret: Optional[str]
    status: str


@dataclass(frozen=True)
class PaymentIntentState:
    id: str
    status: str
    amount: int
    created: datetime


@dataclass(frozen=True)
class CreatedSubscription:
    id: str
    status: str
    current_period_end: Optional[datetime]


class PaymentGateway(ABC):
    """Abstract base class for payments providers."""

    # ── Customers ─────────────────────────────────────────────────────────

    @abstractmethod
    async def ensure_customer(
        self, email: str, name: Optional[str], existing_id: Optional[str] = None
    ) -> str:
        """Return `existing_id` or create a customer and return its id."""
        ...

    @abstractmethod
    async def attach_payment_method(self, payment_method_id: str, customer_id: str) -> None:
        """Attach a payment method and make it the customer's invoice default."""
        ...

    @abstractmethod
    async def payment_method_from_setup_intent(self, setup_intent_id: str) -> str:
        """Return the payment method id a confirmed SetupIntent collected."""
        ...

    # ── Booking Holds ─────────────────────────────────────────────────────

    @abstractmethod
    async def create_booking_hold(
        self,
        amount_cents: int,
        customer_id: str,
        description: str,
        metadata: Dict[str, Any],
    ) -> PaymentHold:
        """Authorise `amount_cents` without capturing it."""
        ...

    @abstractmethod
    async def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentState:
        ...

    @abstractmethod
    async def capture_payment_intent(self, payment_intent_id: str) -> PaymentIntentState:
        ...

    @abstractmethod
    async def cancel_payment_intent(self, payment_intent_id: str) -> None:
        """Release an uncaptured hold."""
        ...

    # ── Payouts ───────────────────────────────────────────────────────────

    @abstractmethod
    async def create_transfer(
        self, amount_cents: int, destination: str, metadata: Dict[str, Any]
    ) -> str:
        """Move funds to a connected account; returns the transfer id."""
        ...

    @abstractmethod
    async def exchange_connect_code(self, code: str) -> str:
        """Complete Connect OAuth; returns the connected account id."""
        ...

    # ── Subscriptions ─────────────────────────────────────────────────────

    @abstractmethod
    async def create_subscription(
        self,
        customer_id: str,
        product_name: str,
        price_cents: int,
        metadata: Dict[str, Any],
        default_payment_method: Optional[str] = None,
    ) -> CreatedSubscription:
        """Create a monthly subscription billed at `price_cents`."""
        ...

    @abstractmethod
    async def cancel_subscription(self, subscription_id: str) -> None:
        ...

    # ── Webhooks ──────────────────────────────────────────────────────────

    @abstractmethod
    def verify_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """
        Verify a webhook signature and return the event as a plain dict.

        Raises:
            ValidationError: malformed payload or bad signature
        """
        ...

    @property
    @abstractmethod
    def provider_name(self) -> str:
        ...
