"""
Booking chat: the two participants of an APPROVED booking can message each
other until the booking's end time. History stays readable afterwards.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from companion.exceptions import ValidationError
from companion.models.booking import Booking, BookingMessage, BookingStatus
from companion.models.user import User
from companion.schemas.booking import ChatHistoryResponse, ChatMessageResponse
from companion.services.booking_service import booking_service

logger = logging.getLogger(__name__)

MAX_CHAT_LENGTH = 1000


class ChatService:

    def _require_open(self, booking: Booking) -> None:
        if booking.status != BookingStatus.APPROVED:
            raise ValidationError(message="Chat is only available for approved bookings")

    async def history(self, db: AsyncSession, user: User, booking_id: uuid.UUID) -> ChatHistoryResponse:
        booking = await booking_service.get_for_participant(db, booking_id, user)
        self._require_open(booking)

        result = await db.execute(
            select(BookingMessage)
            .where(BookingMessage.booking_id == booking.id)
            .order_by(BookingMessage.created_at.asc())
        )
        return ChatHistoryResponse(
            messages=[ChatMessageResponse.model_validate(m) for m in result.scalars().all()]
        )

    async def send(
        self, db: AsyncSession, user: User, booking_id: uuid.UUID, message: str
    ) -> ChatMessageResponse:
        text = (message or "").strip()
        if not text:
            raise ValidationError(message="Message is required", field="message")
        if len(text) > MAX_CHAT_LENGTH:
            raise ValidationError(
                message=f"Message must be less than {MAX_CHAT_LENGTH} characters",
                field="message",
            )

        booking = await booking_service.get_for_participant(db, booking_id, user)
        self._require_open(booking)
        if datetime.now(timezone.utc) > booking.end_time:
            raise ValidationError(message="Chat has closed after booking end time")

        chat_message = BookingMessage(
            booking_id=booking.id,
            sender_id=user.id,
            recipient_id=booking.other_party(user.id),
            sender=user,
            message=text,
        )
        db.add(chat_message)
        await db.flush()
        logger.debug("Chat message %s on booking %s", chat_message.id, booking.id)
        return ChatMessageResponse.model_validate(chat_message)


# ── Singleton Instance ────────────────────────────────────────────────────
chat_service = ChatService()
