"""
Companion Backend — Booking Schemas
=====================================

What:  Request/response contracts for booking requests, creator decisions,
       completion, chat and reviews.
How:   Datetimes are ISO 8601; naive values are interpreted as UTC by the
       service layer. Prices are integer cents.
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from companion.schemas.common import UserSummary


# ══════════════════════════════════════════════════════════════════════════
# Requests
# ══════════════════════════════════════════════════════════════════════════


class BookingRequest(BaseModel):
    creator_id: uuid.UUID
    start_time: datetime
    end_time: datetime
    meeting_location: str = Field(min_length=1, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("meeting_location")
    @classmethod
    def location_not_blank(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Meeting location is required")
        return stripped


class BookingActionRequest(BaseModel):
    booking_id: uuid.UUID


class BookingRejectRequest(BaseModel):
    booking_id: uuid.UUID
    reason: Optional[str] = Field(default=None, max_length=2000)


class BookingStatusUpdate(BaseModel):
    """Body for PATCH /bookings/{id}/status: the creator's decision."""
    status: Literal["APPROVED", "REJECTED"]
    reason: Optional[str] = Field(default=None, max_length=2000)


class ChatMessageRequest(BaseModel):
    message: str = Field(max_length=5000)


class ReviewRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=2000)
    reviewed_user_id: uuid.UUID


# ══════════════════════════════════════════════════════════════════════════
# Responses
# ══════════════════════════════════════════════════════════════════════════


class BookingResponse(BaseModel):
    id: uuid.UUID
    client_id: uuid.UUID
    creator_id: uuid.UUID
    client: Optional[UserSummary] = None
    creator: Optional[UserSummary] = None
    start_time: datetime
    end_time: datetime
    duration_hours: float
    meeting_location: str
    notes: Optional[str] = None
    hourly_rate_cents: int
    total_price_cents: int
    status: str
    rejection_reason: Optional[str] = None
    payment_intent_id: Optional[str] = None
    payment_captured_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingCreatedResponse(BaseModel):
    """
    What:  The pending booking plus the PaymentIntent client secret.
    Why:   The frontend confirms the card with Stripe.js using client_secret;
           funds are only held, not charged, until the booking completes.
    """
    booking: BookingResponse
    client_secret: Optional[str] = None


class BookingCompletedResponse(BaseModel):
    booking: BookingResponse
    creator_earning_cents: int
    platform_fee_cents: int
    transfer_id: Optional[str] = None


class BookingListResponse(BaseModel):
    bookings: List[BookingResponse]


class ChatMessageResponse(BaseModel):
    id: uuid.UUID
    booking_id: uuid.UUID
    sender_id: uuid.UUID
    recipient_id: uuid.UUID
    sender: Optional[UserSummary] = None
    message: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ChatHistoryResponse(BaseModel):
    messages: List[ChatMessageResponse]


class ReviewResponse(BaseModel):
    id: uuid.UUID
    booking_id: uuid.UUID
    reviewer_id: uuid.UUID
    reviewed_user_id: uuid.UUID
    reviewer: Optional[UserSummary] = None
    rating: int
    comment: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ReviewListResponse(BaseModel):
    reviews: List[ReviewResponse]
