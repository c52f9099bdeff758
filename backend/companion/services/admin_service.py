"""
Companion Backend — Development Seed & Clear
==============================================

What:  Populates a fresh database with sample verified creators, or wipes
       every table.
Who:   POST /api/admin/seed and POST /api/admin/clear, guarded by the
       `x-seed-token` header and disabled in production.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from companion.config import settings
from companion.exceptions import AuthenticationError, PermissionDeniedError
from companion.models import (
    Booking,
    BookingMessage,
    Earning,
    KycSubmission,
    Message,
    Post,
    ProfileView,
    Review,
    Subscription,
    User,
    VerificationToken,
    WebhookEvent,
)
from companion.models.user import KycStatus, UserRole, UserStatus
from companion.schemas.admin import ClearResponse, SeedResponse
from companion.security import hash_password

logger = logging.getLogger(__name__)

SEED_PASSWORD = "password123"

SAMPLE_CREATORS = [
    {
        "name": "Sarah Johnson",
        "email": "sarah@example.com",
        "bio": "Professional model and lifestyle creator. Love traveling!",
        "hourly_rate_cents": 999,
        "profile_image": "https://api.dicebear.com/7.x/avataaars/svg?seed=Sarah",
    },
    {
        "name": "Emma Williams",
        "email": "emma@example.com",
        "bio": "Fitness enthusiast and wellness coach.",
        "hourly_rate_cents": 1299,
        "profile_image": "https://api.dicebear.com/7.x/avataaars/svg?seed=Emma",
    },
    {
        "name": "Jessica Davis",
        "email": "jessica@example.com",
        "bio": "Fashion blogger & stylist.",
        "hourly_rate_cents": 1499,
        "profile_image": "https://api.dicebear.com/7.x/avataaars/svg?seed=Jessica",
    },
    {
        "name": "Olivia Martinez",
        "email": "olivia@example.com",
        "bio": "Artist & creative mind.",
        "hourly_rate_cents": 1199,
        "profile_image": "https://api.dicebear.com/7.x/avataaars/svg?seed=Olivia",
    },
]

# Children before parents
CLEAR_ORDER = [
    WebhookEvent,
    Review,
    BookingMessage,
    Earning,
    Booking,
    Message,
    Post,
    Subscription,
    ProfileView,
    KycSubmission,
    VerificationToken,
    User,
]


class AdminService:

    def check_seed_access(self, token: Optional[str]) -> None:
        if not token or not secrets.compare_digest(token.encode(), settings.seed_token.encode()):
            raise AuthenticationError(message="Invalid seed token")
        if settings.is_production:
            raise PermissionDeniedError(message="Not allowed in production")

    async def seed(self, db: AsyncSession) -> SeedResponse:
        existing = await db.scalar(select(func.count(User.id)).where(User.is_creator.is_(True)))
        if existing:
            logger.info("Seed skipped: %d creators already exist", existing)
            return SeedResponse(message="Creators already exist in database", created=[])

        now = datetime.now(timezone.utc)
        password_hash = hash_password(SEED_PASSWORD)
        created = []
        for data in SAMPLE_CREATORS:
            db.add(
                User(
                    **data,
                    password_hash=password_hash,
                    role=UserRole.CREATOR,
                    status=UserStatus.ACTIVE,
                    is_creator=True,
                    kyc_status=KycStatus.VERIFIED,
                    kyc_verified_at=now,
                    email_verified_at=now,
                )
            )
            created.append(data["email"])
        await db.flush()
        logger.info("Seeded %d sample creators", len(created))
        return SeedResponse(message="Database seeded successfully", created=created)

    async def clear(self, db: AsyncSession) -> ClearResponse:
        deleted: Dict[str, int] = {}
        for model in CLEAR_ORDER:
            result = await db.execute(delete(model))
            deleted[model.__tablename__] = result.rowcount or 0
        logger.warning("Database cleared: %s", deleted)
        return ClearResponse(message="Database cleared successfully", deleted=deleted)


# ── Singleton Instance ────────────────────────────────────────────────────
admin_service = AdminService()
