"""
Companion Backend — Booking Service (Payment Lifecycle Orchestrator)
======================================================================

What:  Request → pre-authorise → approve/reject/cancel → complete → capture
       → creator earning (+ payout transfer).
Why:   Money moves only when both sides have done their part: the card is
       authorised at request time, but nothing is charged until the
       booking is completed after its end time.
How:   Composes the payments gateway (Stripe) and database operations.
Who:   /api/bookings routes; chat_service and review_service reuse the
       participant lookup.

Orchestration Flow (POST /api/bookings/request):
    ┌──────────┐    ┌──────────────┐    ┌──────────────┐    ┌──────────┐
    │ Validate │───▶│  Conflict    │───▶│ Stripe hold  │───▶│  Store   │
    │ creator, │    │  check       │    │ (manual      │    │ PENDING  │
    │ window   │    │  (inclusive) │    │  capture)    │    │ booking  │
    └──────────┘    └──────────────┘    └──────────────┘    └──────────┘

Completion (POST /api/bookings/complete):
    PaymentIntent status:
        requires_capture → capture now
        succeeded        → already captured; use the intent's created time
        anything else    → 409, nothing changes
    Then: COMPLETED, Earning(total - platform fee), and a Connect transfer
    when the creator has a real (non-mock) connected account.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from companion.config import settings
from companion.exceptions import (
    CompanionError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from companion.models.booking import Booking, BookingStatus
from companion.models.subscription import Earning, EarningType
from companion.models.user import User
from companion.schemas.booking import (
    BookingCompletedResponse,
    BookingCreatedResponse,
    BookingListResponse,
    BookingRequest,
    BookingResponse,
)
from companion.services.stripe_service import payment_gateway

logger = logging.getLogger(__name__)

MAX_BOOKING_HOURS = 8
MAX_LIST_RESULTS = 50


def as_utc(value: datetime) -> datetime:
    """Naive datetimes from clients are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_real_connect_account(account_id: Optional[str]) -> bool:
    return bool(account_id) and account_id.startswith("acct_") and not account_id.startswith("acct_mock_")


def round_cents(value: Decimal) -> int:
    """Whole cents, halves rounded up."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def booking_total_cents(rate_cents: int, duration_hours: float) -> int:
    return round_cents(Decimal(rate_cents) * Decimal(str(duration_hours)))


def platform_fee(amount_cents: int, percent: int) -> int:
    return round_cents(Decimal(amount_cents) * percent / 100)


class BookingService:
    """
    Business logic for bookings.

    Error Handling Strategy:
        Rule violations raise ValidationError (400), wrong actor raises
        PermissionDeniedError (403), wrong state raises ConflictError (409).
        Releasing a hold after reject/cancel is best-effort: Stripe expires
        uncaptured intents on its own, so a failed cancel is only logged.
    """

    # ── Lookups ───────────────────────────────────────────────────────────

    async def get_booking(self, db: AsyncSession, booking_id: uuid.UUID) -> Booking:
        booking = await db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError(resource="booking", resource_id=str(booking_id))
        return booking

    async def get_for_participant(self, db: AsyncSession, booking_id: uuid.UUID, user: User) -> Booking:
        booking = await self.get_booking(db, booking_id)
        if not booking.is_participant(user.id):
            raise PermissionDeniedError(message="You are not a participant in this booking")
        return booking

    async def _get_for_creator(self, db: AsyncSession, booking_id: uuid.UUID, user: User) -> Booking:
        booking = await self.get_booking(db, booking_id)
        if booking.creator_id != user.id:
            raise PermissionDeniedError(message="Only the creator can respond to this booking")
        if booking.status != BookingStatus.PENDING:
            raise ConflictError(
                message=f"Booking is already {booking.status}",
                context={"status": booking.status},
            )
        return booking

    # ── Request ───────────────────────────────────────────────────────────

    async def request_booking(
        self, db: AsyncSession, client: User, data: BookingRequest
    ) -> BookingCreatedResponse:
        creator = await db.get(User, data.creator_id)
        if creator is None:
            raise NotFoundError(resource="creator", resource_id=str(data.creator_id))
        if not creator.is_bookable:
            raise PermissionDeniedError(message="Creator is not available for bookings")
        if creator.id == client.id:
            raise ValidationError(message="Cannot book yourself", field="creator_id")

        start = as_utc(data.start_time)
        end = as_utc(data.end_time)
        if end <= start:
            raise ValidationError(message="End time must be after start time", field="end_time")
        if start < datetime.now(timezone.utc):
            raise ValidationError(message="Cannot book in the past", field="start_time")

        duration_hours = (end - start).total_seconds() / 3600
        min_hours = creator.min_hours or 2
        if duration_hours < min_hours:
            raise ValidationError(
                message=f"Minimum booking duration is {min_hours} hours",
                context={"min_hours": min_hours},
            )
        if duration_hours > MAX_BOOKING_HOURS:
            raise ValidationError(
                message=f"Maximum booking duration is {MAX_BOOKING_HOURS} hours",
                context={"max_hours": MAX_BOOKING_HOURS},
            )

        rate_cents = creator.hourly_rate_cents or 0
        if rate_cents <= 0:
            raise ValidationError(message="Creator has not set an hourly rate")
        total_cents = booking_total_cents(rate_cents, duration_hours)

        # Touching intervals count as overlapping
        conflict = await db.scalar(
            select(Booking.id)
            .where(
                Booking.creator_id == creator.id,
                Booking.status.in_(BookingStatus.ACTIVE),
                Booking.start_time <= end,
                Booking.end_time >= start,
            )
            .limit(1)
        )
        if conflict is not None:
            raise ConflictError(
                message="Creator has a conflicting booking at this time",
                context={"conflicting_booking_id": str(conflict)},
            )

        customer_id = await payment_gateway.ensure_customer(
            client.email, client.name, existing_id=client.stripe_customer_id
        )
        if client.stripe_customer_id != customer_id:
            client.stripe_customer_id = customer_id

        hold = await payment_gateway.create_booking_hold(
            amount_cents=total_cents,
            customer_id=customer_id,
            description=f"Booking request for {creator.name or 'Creator'}",
            metadata={
                "booking_type": "date_booking",
                "creator_id": creator.id,
                "client_id": client.id,
                "start_time": start.isoformat(),
                "end_time": end.isoformat(),
                "duration_hours": f"{duration_hours:g}",
            },
        )

        booking = Booking(
            client_id=client.id,
            creator_id=creator.id,
            client=client,
            creator=creator,
            start_time=start,
            end_time=end,
            duration_hours=duration_hours,
            meeting_location=data.meeting_location,
            notes=data.notes or None,
            hourly_rate_cents=rate_cents,
            total_price_cents=total_cents,
            status=BookingStatus.PENDING,
            payment_intent_id=hold.id,
        )
        db.add(booking)
        await db.flush()
        logger.info(
            "Booking %s requested: client=%s creator=%s total=%d cents intent=%s",
            booking.id,
            client.id,
            creator.id,
            total_cents,
            hold.id,
        )
        return BookingCreatedResponse(
            booking=BookingResponse.model_validate(booking),
            client_secret=hold.client_secret,
        )

    # ── Creator decision ──────────────────────────────────────────────────

    async def approve(self, db: AsyncSession, user: User, booking_id: uuid.UUID) -> BookingResponse:
        booking = await self._get_for_creator(db, booking_id, user)
        booking.status = BookingStatus.APPROVED
        await db.flush()
        logger.info("Booking %s approved", booking.id)
        return BookingResponse.model_validate(booking)

    async def reject(
        self, db: AsyncSession, user: User, booking_id: uuid.UUID, reason: Optional[str] = None
    ) -> BookingResponse:
        booking = await self._get_for_creator(db, booking_id, user)
        await self._release_hold(booking)
        booking.status = BookingStatus.REJECTED
        booking.rejection_reason = reason or None
        await db.flush()
        logger.info("Booking %s rejected", booking.id)
        return BookingResponse.model_validate(booking)

    async def set_status(
        self,
        db: AsyncSession,
        user: User,
        booking_id: uuid.UUID,
        status: str,
        reason: Optional[str] = None,
    ) -> BookingResponse:
        if status == BookingStatus.APPROVED:
            return await self.approve(db, user, booking_id)
        return await self.reject(db, user, booking_id, reason)

    async def cancel(self, db: AsyncSession, user: User, booking_id: uuid.UUID) -> BookingResponse:
        booking = await self.get_booking(db, booking_id)
        if booking.client_id != user.id:
            raise PermissionDeniedError(message="Only the client can cancel this booking")
        if booking.status != BookingStatus.PENDING:
            raise ConflictError(
                message=f"Booking is already {booking.status}",
                context={"status": booking.status},
            )
        await self._release_hold(booking)
        booking.status = BookingStatus.CANCELLED
        await db.flush()
        logger.info("Booking %s cancelled by client", booking.id)
        return BookingResponse.model_validate(booking)

    async def _release_hold(self, booking: Booking) -> None:
        if not booking.payment_intent_id:
            return
        try:
            await payment_gateway.cancel_payment_intent(booking.payment_intent_id)
        except CompanionError as e:
            logger.warning(
                "Could not release hold %s for booking %s: %s",
                booking.payment_intent_id,
                booking.id,
                e.message,
            )

    # ── Completion ────────────────────────────────────────────────────────

    async def complete(self, db: AsyncSession, user: User, booking_id: uuid.UUID) -> BookingCompletedResponse:
        booking = await self.get_for_participant(db, booking_id, user)
        if booking.status != BookingStatus.APPROVED:
            raise ConflictError(
                message=f"Booking must be APPROVED to complete. Current status: {booking.status}",
                context={"status": booking.status},
            )
        now = datetime.now(timezone.utc)
        if now < booking.end_time:
            raise ValidationError(message="Cannot complete booking before end time")

        captured_at = booking.payment_captured_at
        if captured_at is None and booking.payment_intent_id:
            intent = await payment_gateway.retrieve_payment_intent(booking.payment_intent_id)
            if intent.status == "requires_capture":
                await payment_gateway.capture_payment_intent(booking.payment_intent_id)
                captured_at = now
            elif intent.status == "succeeded":
                captured_at = intent.created
            else:
                raise ConflictError(
                    message=f"Payment cannot be captured (status: {intent.status})",
                    context={"payment_status": intent.status},
                )

        fee_cents = platform_fee(booking.total_price_cents, settings.booking_platform_fee_percent)
        payout_cents = booking.total_price_cents - fee_cents

        booking.status = BookingStatus.COMPLETED
        booking.payment_captured_at = captured_at or now

        earning = Earning(
            creator_id=booking.creator_id,
            type=EarningType.BOOKING,
            amount_cents=payout_cents,
            booking_id=booking.id,
            description=f"Booking {booking.id}",
        )
        db.add(earning)

        connect_id = booking.creator.stripe_connect_id
        if is_real_connect_account(connect_id):
            earning.stripe_transfer_id = await self._pay_out(booking, payout_cents, connect_id)

        await db.flush()
        logger.info(
            "Booking %s completed: earning=%d fee=%d transfer=%s",
            booking.id,
            payout_cents,
            fee_cents,
            earning.stripe_transfer_id,
        )
        return BookingCompletedResponse(
            booking=BookingResponse.model_validate(booking),
            creator_earning_cents=payout_cents,
            platform_fee_cents=fee_cents,
            transfer_id=earning.stripe_transfer_id,
        )

    async def _pay_out(self, booking: Booking, amount_cents: int, destination: str) -> Optional[str]:
        """
        Transfer the creator's share. The capture has already happened, so a
        failed transfer is logged for manual payout instead of undoing it.
        """
        try:
            return await payment_gateway.create_transfer(
                amount_cents=amount_cents,
                destination=destination,
                metadata={"booking_id": booking.id},
            )
        except CompanionError as e:
            logger.error(
                "Payout transfer failed for booking %s (%d cents to %s): %s",
                booking.id,
                amount_cents,
                destination,
                e.message,
            )
            return None

    # ── Listing ───────────────────────────────────────────────────────────

    async def list_bookings(
        self,
        db: AsyncSession,
        user: User,
        role: str = "all",
        status: Optional[str] = None,
    ) -> BookingListResponse:
        query = select(Booking)
        if role == "creator":
            query = query.where(Booking.creator_id == user.id)
        elif role == "client":
            query = query.where(Booking.client_id == user.id)
        else:
            query = query.where(or_(Booking.creator_id == user.id, Booking.client_id == user.id))
        if status:
            query = query.where(Booking.status == status.upper())

        result = await db.execute(query.order_by(Booking.created_at.desc()).limit(MAX_LIST_RESULTS))
        return BookingListResponse(
            bookings=[BookingResponse.model_validate(b) for b in result.scalars().all()]
        )

    async def get_detail(self, db: AsyncSession, user: User, booking_id: uuid.UUID) -> BookingResponse:
        booking = await self.get_for_participant(db, booking_id, user)
        return BookingResponse.model_validate(booking)


# ── Singleton Instance ────────────────────────────────────────────────────
booking_service = BookingService()
