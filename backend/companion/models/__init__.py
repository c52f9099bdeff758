"""
ORM models.

Importing this package registers every table on `Base.metadata`, which
Alembic autogenerate and the test suite's `create_all` both rely on.
"""

from companion.models.booking import Booking, BookingMessage, BookingStatus, Review
from companion.models.content import Message, Post, ProfileView
from companion.models.kyc import IdType, KycSubmission
from companion.models.subscription import (
    Earning,
    EarningType,
    Subscription,
    SubscriptionStatus,
    SubscriptionTier,
)
from companion.models.user import KycStatus, User, UserRole, UserStatus, VerificationToken
from companion.models.webhook_event import WebhookEvent, WebhookEventStatus

__all__ = [
    "Booking",
    "BookingMessage",
    "BookingStatus",
    "Earning",
    "EarningType",
    "IdType",
    "KycStatus",
    "KycSubmission",
    "Message",
    "Post",
    "ProfileView",
    "Review",
    "Subscription",
    "SubscriptionStatus",
    "SubscriptionTier",
    "User",
    "UserRole",
    "UserStatus",
    "VerificationToken",
    "WebhookEvent",
    "WebhookEventStatus",
]
