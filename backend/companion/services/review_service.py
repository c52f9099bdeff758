"""
Post-completion reviews. Each participant may review the other party once
per booking; a review of the creator refreshes their average rating.
"""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from companion.exceptions import ConflictError, ValidationError
from companion.models.booking import BookingStatus, Review
from companion.models.user import User
from companion.schemas.booking import ReviewListResponse, ReviewRequest, ReviewResponse
from companion.services.booking_service import booking_service

logger = logging.getLogger(__name__)


class ReviewService:

    async def submit(
        self, db: AsyncSession, user: User, booking_id: uuid.UUID, data: ReviewRequest
    ) -> ReviewResponse:
        booking = await booking_service.get_for_participant(db, booking_id, user)
        if booking.status != BookingStatus.COMPLETED:
            raise ValidationError(message="Reviews can only be submitted for completed bookings")
        if data.reviewed_user_id != booking.other_party(user.id):
            raise ValidationError(
                message="Can only review the other party in the booking",
                field="reviewed_user_id",
            )

        existing = await db.scalar(
            select(Review.id).where(Review.booking_id == booking.id, Review.reviewer_id == user.id)
        )
        if existing is not None:
            raise ConflictError(message="Review already submitted for this booking")

        review = Review(
            booking_id=booking.id,
            reviewer_id=user.id,
            reviewer=user,
            reviewed_user_id=data.reviewed_user_id,
            rating=data.rating,
            comment=(data.comment or "").strip() or None,
        )
        db.add(review)
        await db.flush()

        if data.reviewed_user_id == booking.creator_id:
            average = await db.scalar(
                select(func.avg(Review.rating)).where(Review.reviewed_user_id == booking.creator_id)
            )
            booking.creator.average_rating = float(average) if average is not None else None
            await db.flush()

        logger.info("Review %s on booking %s (rating=%d)", review.id, booking.id, review.rating)
        return ReviewResponse.model_validate(review)

    async def list_for_booking(self, db: AsyncSession, user: User, booking_id: uuid.UUID) -> ReviewListResponse:
        booking = await booking_service.get_for_participant(db, booking_id, user)
        result = await db.execute(
            select(Review).where(Review.booking_id == booking.id).order_by(Review.created_at.desc())
        )
        return ReviewListResponse(
            reviews=[ReviewResponse.model_validate(r) for r in result.scalars().all()]
        )


# ── Singleton Instance ────────────────────────────────────────────────────
review_service = ReviewService()
