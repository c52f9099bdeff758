"""
Companion Backend — User SQLAlchemy Models
============================================

What:  ORM models for the `users` and `verification_tokens` tables.
Why:   A single user row carries both sides of the marketplace: a fan who
       subscribes and books, and (when `is_creator` is set) a creator who
       is booked, paid and reviewed.
Who:   Used by every service; the creator-facing columns (hourly rate,
       Connect account, rating) are only meaningful when `is_creator`.

Status columns are short strings rather than database enums so that
adding a value never requires an `ALTER TYPE` migration. The allowed
values live in the small constant classes below.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from companion.database import Base
from companion.models.types import UTCDateTime, utcnow


class UserRole:
    FAN = "FAN"
    CREATOR = "CREATOR"
    ADMIN = "ADMIN"


class UserStatus:
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class KycStatus:
    NOT_STARTED = "NOT_STARTED"
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class User(Base):
    """
    A registered account.

    Lifecycle:
        1. Registered as FAN (kyc_status = NOT_STARTED)
        2. Profile set to CREATOR → is_creator = True
        3. KYC submitted → PENDING → VERIFIED | REJECTED (admin review)
        4. Stripe Connect onboarding stores stripe_connect_id for payouts

    Money:
        hourly_rate_cents is an integer number of cents; never use floats
        for amounts that are charged.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email_verified_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # ── Role & Account State ──────────────────────────────────────────────
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.FAN)
    is_creator: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=UserStatus.ACTIVE)

    # ── KYC (mirrors the latest kyc_submissions row) ──────────────────────
    kyc_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=KycStatus.NOT_STARTED
    )
    kyc_rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    kyc_verified_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # ── Public Profile ────────────────────────────────────────────────────
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    profile_image: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    video_intro_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    # ── Creator Booking Terms ─────────────────────────────────────────────
    hourly_rate_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    min_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    average_rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # ── Stripe ────────────────────────────────────────────────────────────
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    stripe_connect_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_bookable(self) -> bool:
        """Visible in listings and accepting bookings."""
        return (
            self.is_creator
            and self.status == UserStatus.ACTIVE
            and self.kyc_status == KycStatus.VERIFIED
        )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"


class VerificationToken(Base):
    """One-time email verification token (valid for 24 hours by default)."""

    __tablename__ = "verification_tokens"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
