"""
Companion Backend — Booking Routes
====================================

What:  Booking requests, creator decisions, cancellation, completion,
       listing, per-booking chat and reviews.
Who:   Fans (clients) request and cancel; creators approve/reject; either
       participant completes, chats and reviews.
"""

import logging
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from companion.database import get_db_session
from companion.models.user import User
from companion.schemas.booking import (
    BookingActionRequest,
    BookingCompletedResponse,
    BookingCreatedResponse,
    BookingListResponse,
    BookingRejectRequest,
    BookingRequest,
    BookingResponse,
    BookingStatusUpdate,
    ChatHistoryResponse,
    ChatMessageRequest,
    ChatMessageResponse,
    ReviewListResponse,
    ReviewRequest,
    ReviewResponse,
)
from companion.schemas.common import ErrorResponse
from companion.security import get_current_user
from companion.services.booking_service import booking_service
from companion.services.chat_service import chat_service
from companion.services.review_service import review_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])

_DECISION_RESPONSES = {
    403: {"description": "Not the booking's creator", "model": ErrorResponse},
    404: {"description": "Booking not found", "model": ErrorResponse},
    409: {"description": "Booking is not pending", "model": ErrorResponse},
}


@router.post(
    "/request",
    response_model=BookingCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid time window or rate", "model": ErrorResponse},
        402: {"description": "Card declined", "model": ErrorResponse},
        403: {"description": "Creator not bookable", "model": ErrorResponse},
        409: {"description": "Overlapping booking", "model": ErrorResponse},
        503: {"description": "Payments unavailable", "model": ErrorResponse},
    },
    summary="Request a booking (authorises the card)",
)
async def request_booking(
    body: BookingRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BookingCreatedResponse:
    """
    Creates a PENDING booking with a manual-capture PaymentIntent. The
    client confirms the card with Stripe.js using `client_secret`.
    """
    return await booking_service.request_booking(db, user, body)


@router.post("/approve", response_model=BookingResponse, responses=_DECISION_RESPONSES, summary="Approve a booking")
async def approve_booking(
    body: BookingActionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BookingResponse:
    return await booking_service.approve(db, user, body.booking_id)


@router.post("/reject", response_model=BookingResponse, responses=_DECISION_RESPONSES, summary="Reject a booking")
async def reject_booking(
    body: BookingRejectRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BookingResponse:
    return await booking_service.reject(db, user, body.booking_id, body.reason)


@router.post(
    "/complete",
    response_model=BookingCompletedResponse,
    responses={
        400: {"description": "Booking has not ended yet", "model": ErrorResponse},
        403: {"description": "Not a participant", "model": ErrorResponse},
        409: {"description": "Not approved, or payment not capturable", "model": ErrorResponse},
    },
    summary="Complete a booking and capture payment",
)
async def complete_booking(
    body: BookingActionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BookingCompletedResponse:
    return await booking_service.complete(db, user, body.booking_id)


@router.get("/list", response_model=BookingListResponse, summary="My bookings, newest first")
async def list_bookings(
    role: Literal["creator", "client", "all"] = Query(default="all"),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BookingListResponse:
    return await booking_service.list_bookings(db, user, role=role, status=status_filter)


@router.get("/{booking_id}", response_model=BookingResponse, summary="Booking detail")
async def get_booking(
    booking_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BookingResponse:
    return await booking_service.get_detail(db, user, booking_id)


@router.patch(
    "/{booking_id}/status",
    response_model=BookingResponse,
    responses=_DECISION_RESPONSES,
    summary="Approve or reject a booking",
)
async def update_booking_status(
    booking_id: UUID,
    body: BookingStatusUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BookingResponse:
    return await booking_service.set_status(db, user, booking_id, body.status, body.reason)


@router.post(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    responses={
        403: {"description": "Not the booking's client", "model": ErrorResponse},
        409: {"description": "Booking is not pending", "model": ErrorResponse},
    },
    summary="Cancel a pending booking (releases the hold)",
)
async def cancel_booking(
    booking_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BookingResponse:
    return await booking_service.cancel(db, user, booking_id)


# ── Chat ──────────────────────────────────────────────────────────────────


@router.get("/{booking_id}/chat", response_model=ChatHistoryResponse, summary="Booking chat history")
async def get_chat(
    booking_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ChatHistoryResponse:
    return await chat_service.history(db, user, booking_id)


@router.post(
    "/{booking_id}/chat",
    response_model=ChatMessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a chat message",
)
async def post_chat(
    booking_id: UUID,
    body: ChatMessageRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ChatMessageResponse:
    return await chat_service.send(db, user, booking_id, body.message)


# ── Reviews ───────────────────────────────────────────────────────────────


@router.get("/{booking_id}/review", response_model=ReviewListResponse, summary="Reviews for a booking")
async def get_reviews(
    booking_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ReviewListResponse:
    return await review_service.list_for_booking(db, user, booking_id)


@router.post(
    "/{booking_id}/review",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Already reviewed", "model": ErrorResponse}},
    summary="Review the other party of a completed booking",
)
async def post_review(
    booking_id: UUID,
    body: ReviewRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ReviewResponse:
    return await review_service.submit(db, user, booking_id, body)
