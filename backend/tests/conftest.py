"""
Companion Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Environment variables are set before any `companion` import so the
       settings singleton sees test values. Every test gets a fresh
       in-memory SQLite database built from Base.metadata.

Fixture Hierarchy:
    engine                → in-memory sqlite+aiosqlite, tables created per test
    ├── session_factory   → async_sessionmaker bound to the engine
    │   ├── db_session    → session used directly by service tests
    │   └── client        → httpx AsyncClient; each request gets its own
    │                       session through the get_db_session override
    └── make_user / fan / creator / admin → committed User rows
        make_kyc_submission, make_booking, make_subscription → committed rows in any state
    auth_headers          → Bearer header for a user
    gateway               → AsyncMocks in place of every Stripe call

External services:
    Stripe, S3 and Postmark are never contacted. Tests patch methods on the
    `payment_gateway` singleton; Postmark has no token so emails are
    logged and skipped; S3 is unconfigured unless a test swaps in a
    configured StorageService.
"""

import os
import tempfile
import uuid

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_not_real"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_not_real"
os.environ["STRIPE_CONNECT_CLIENT_ID"] = ""
os.environ["POSTMARK_SERVER_TOKEN"] = ""
os.environ["AWS_S3_BUCKET"] = ""
os.environ["AWS_ACCESS_KEY_ID"] = ""
os.environ["AWS_SECRET_ACCESS_KEY"] = ""
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["SEED_TOKEN"] = "test-seed-token"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="companion_test_")
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import date, datetime, timedelta, timezone  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from typing import AsyncGenerator, Dict  # noqa: E402
from unittest.mock import AsyncMock, patch  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import companion.models  # noqa: E402,F401
from companion.database import Base, get_db_session  # noqa: E402
from companion.models.booking import Booking, BookingStatus  # noqa: E402
from companion.models.kyc import IdType, KycSubmission  # noqa: E402
from companion.models.subscription import Subscription, SubscriptionStatus, SubscriptionTier  # noqa: E402
from companion.models.user import KycStatus, User, UserRole  # noqa: E402
from companion.security import create_access_token, hash_password  # noqa: E402
from companion.services.payment_base import CreatedSubscription, PaymentHold, PaymentIntentState  # noqa: E402
from companion.services.stripe_service import payment_gateway  # noqa: E402

TEST_PASSWORD = "correct-horse-battery"
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine():
    """
    One shared connection (StaticPool) so every session in a test sees the
    same in-memory database.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Users
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_user(db_session):
    """
    Factory for committed users.

    Usage:
        creator = await make_user(email="c@example.com", creator=True)
    """
    counter = {"n": 0}

    async def _make_user(
        email: str = None,
        name: str = None,
        creator: bool = False,
        role: str = None,
        **fields,
    ) -> User:
        counter["n"] += 1
        n = counter["n"]
        values = dict(
            email=email or f"user{n}@example.com",
            name=name or f"User {n}",
            password_hash=TEST_PASSWORD_HASH,
            role=role or (UserRole.CREATOR if creator else UserRole.FAN),
            is_creator=creator,
        )
        if creator:
            values.update(
                kyc_status=KycStatus.VERIFIED,
                kyc_verified_at=datetime.now(timezone.utc),
                hourly_rate_cents=5000,
                min_hours=2,
            )
        values.update(fields)
        user = User(**values)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest_asyncio.fixture
async def fan(make_user) -> User:
    return await make_user(email="fan@example.com", name="Fan")


@pytest_asyncio.fixture
async def creator(make_user) -> User:
    return await make_user(email="creator@example.com", name="Creator", creator=True)


@pytest_asyncio.fixture
async def admin(make_user) -> User:
    return await make_user(email="admin@example.com", name="Admin", role=UserRole.ADMIN)


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def make_kyc_submission(db_session):
    """Committed KycSubmission for `user`, with matching kyc_status on the user."""

    async def _make_kyc_submission(user: User, status: str = KycStatus.PENDING) -> KycSubmission:
        submission = KycSubmission(
            user_id=user.id,
            first_name="Jamie",
            last_name="Doe",
            date_of_birth=date(1990, 1, 1),
            id_type=IdType.PASSPORT,
            government_id_number="X1234567",
            government_id_key=f"kyc/{user.id}/id/1.jpg",
            government_id_url=f"https://bucket.s3.us-east-1.amazonaws.com/kyc/{user.id}/id/1.jpg",
            liveliness_key=f"kyc/{user.id}/selfie/1.jpg",
            liveliness_url=f"https://bucket.s3.us-east-1.amazonaws.com/kyc/{user.id}/selfie/1.jpg",
            status=status,
        )
        user.kyc_status = status
        db_session.add(submission)
        await db_session.commit()
        return submission

    return _make_kyc_submission


# ══════════════════════════════════════════════════════════════════════════
# Bookings
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_booking(db_session):
    """
    Insert a booking directly, bypassing request-time validation, so tests
    can start from any status and time window.
    """

    async def _make_booking(
        client: User,
        creator: User,
        status: str = BookingStatus.PENDING,
        start: datetime = None,
        hours: float = 2,
        **fields,
    ) -> Booking:
        start = start or datetime.now(timezone.utc) + timedelta(days=1)
        rate = creator.hourly_rate_cents or 5000
        values = dict(
            client_id=client.id,
            creator_id=creator.id,
            start_time=start,
            end_time=start + timedelta(hours=hours),
            duration_hours=hours,
            meeting_location="Cafe Central",
            hourly_rate_cents=rate,
            total_price_cents=int(rate * hours),
            status=status,
            payment_intent_id="pi_test_123",
        )
        values.update(fields)
        booking = Booking(**values)
        db_session.add(booking)
        await db_session.commit()
        return booking

    return _make_booking


@pytest.fixture
def make_subscription(db_session):

    async def _make_subscription(
        subscriber: User,
        creator: User,
        tier: str = SubscriptionTier.BASIC,
        status: str = SubscriptionStatus.ACTIVE,
        **fields,
    ) -> Subscription:
        values = dict(
            subscriber_id=subscriber.id,
            creator_id=creator.id,
            tier=tier,
            price_cents=SubscriptionTier.PRICING[tier],
            status=status,
            stripe_subscription_id=f"sub_{uuid.uuid4().hex[:14]}",
            renews_at=datetime.now(timezone.utc) + timedelta(days=30),
        )
        values.update(fields)
        subscription = Subscription(**values)
        db_session.add(subscription)
        await db_session.commit()
        return subscription

    return _make_subscription


# ══════════════════════════════════════════════════════════════════════════
# Payments
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def gateway():
    """
    Replace every network-bound method of the `payment_gateway` singleton
    with an AsyncMock. Tests adjust the returned namespace, e.g.
    `gateway.retrieve_payment_intent.return_value = ...`.
    """
    mocks = SimpleNamespace(
        ensure_customer=AsyncMock(return_value="cus_test_1"),
        attach_payment_method=AsyncMock(return_value=None),
        payment_method_from_setup_intent=AsyncMock(return_value="pm_test_1"),
        create_booking_hold=AsyncMock(
            return_value=PaymentHold(
                id="pi_test_new", client_secret="pi_test_new_secret", status="requires_payment_method"
            )
        ),
        retrieve_payment_intent=AsyncMock(
            return_value=PaymentIntentState(
                id="pi_test_123",
                status="requires_capture",
                amount=10000,
                created=datetime.now(timezone.utc),
            )
        ),
        capture_payment_intent=AsyncMock(),
        cancel_payment_intent=AsyncMock(return_value=None),
        create_transfer=AsyncMock(return_value="tr_test_1"),
        exchange_connect_code=AsyncMock(return_value="acct_test_1"),
        create_subscription=AsyncMock(
            return_value=CreatedSubscription(
                id="sub_test_1",
                status="active",
                current_period_end=datetime.now(timezone.utc) + timedelta(days=30),
            )
        ),
        cancel_subscription=AsyncMock(return_value=None),
    )
    with patch.multiple(payment_gateway, **vars(mocks)):
        yield mocks


# ══════════════════════════════════════════════════════════════════════════
# API Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX AsyncClient talking to the FastAPI app in-process.

    get_db_session is overridden with the same commit/rollback contract
    as production, but bound to the test engine.
    """
    from companion.main import app

    async def _test_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _test_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
    app.dependency_overrides.clear()
