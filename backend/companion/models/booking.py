"""
Companion Backend — Booking SQLAlchemy Models
===============================================

What:  `bookings`, `booking_messages` and `reviews` tables.
Why:   A booking is a paid, in-person time slot. Its status column drives
       the whole payment lifecycle; chat and reviews hang off it.

Status Machine:
    PENDING ──approve──▶ APPROVED ──complete──▶ COMPLETED
       │                                            │
       ├──reject──▶ REJECTED                        └─▶ reviews allowed
       └──cancel──▶ CANCELLED

    PENDING:   card authorised, funds held (manual-capture PaymentIntent)
    APPROVED:  creator accepted; chat opens until end_time
    REJECTED / CANCELLED: hold released
    COMPLETED: hold captured, creator earning recorded

Query Patterns:
    - Overlap check: creator_id + status IN (PENDING, APPROVED) + time range
      → ix_bookings_creator_start
    - Dashboards: client_id / creator_id ordered by created_at DESC
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from companion.database import Base
from companion.models.types import UTCDateTime, utcnow
from companion.models.user import User


class BookingStatus:
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    # Statuses that occupy the creator's calendar
    ACTIVE = (PENDING, APPROVED)


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    duration_hours: Mapped[float] = mapped_column(Float, nullable=False)
    meeting_location: Mapped[str] = mapped_column(String(500), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── Pricing (cents, frozen at request time) ───────────────────────────
    hourly_rate_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    total_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    # ── Lifecycle ─────────────────────────────────────────────────────────
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=BookingStatus.PENDING)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_intent_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_captured_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    client: Mapped[User] = relationship(foreign_keys=[client_id], lazy="selectin")
    creator: Mapped[User] = relationship(foreign_keys=[creator_id], lazy="selectin")

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_bookings_time_order"),
        Index("ix_bookings_creator_start", "creator_id", "start_time"),
    )

    def is_participant(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.client_id, self.creator_id)

    def other_party(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.creator_id if user_id == self.client_id else self.client_id

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, status='{self.status}', start='{self.start_time}')>"


class BookingMessage(Base):
    """Chat line between the two participants of an approved booking."""

    __tablename__ = "booking_messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    recipient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    sender: Mapped[User] = relationship(foreign_keys=[sender_id], lazy="selectin")


class Review(Base):
    """Post-completion rating. One per booking per reviewer."""

    __tablename__ = "reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    reviewed_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    reviewer: Mapped[User] = relationship(foreign_keys=[reviewer_id], lazy="selectin")

    __table_args__ = (
        UniqueConstraint("booking_id", "reviewer_id", name="uq_reviews_booking_reviewer"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
    )
