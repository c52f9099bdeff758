"""Direct messages between a subscriber and a creator."""

import logging
import uuid

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from companion.exceptions import PermissionDeniedError, ValidationError
from companion.models.content import Message
from companion.models.subscription import Subscription, SubscriptionStatus
from companion.models.user import User
from companion.schemas.content import ConversationResponse, MessageResponse, MessageSendRequest

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1000


class MessageService:

    async def send(self, db: AsyncSession, sender: User, data: MessageSendRequest) -> MessageResponse:
        content = data.content.strip()
        if not content:
            raise ValidationError(message="Message cannot be empty", field="content")
        if len(content) > MAX_MESSAGE_LENGTH:
            raise ValidationError(
                message=f"Message must be at most {MAX_MESSAGE_LENGTH} characters",
                field="content",
            )

        subscription_id = await db.scalar(
            select(Subscription.id).where(
                Subscription.subscriber_id == sender.id,
                Subscription.creator_id == data.recipient_id,
                Subscription.status == SubscriptionStatus.ACTIVE,
            )
        )
        if subscription_id is None:
            raise PermissionDeniedError(message="Must be subscribed to message this creator")

        message = Message(
            sender_id=sender.id,
            recipient_id=data.recipient_id,
            content=content,
            is_paid_message=data.is_paid_message,
            cost_credits=data.cost_credits,
        )
        db.add(message)
        await db.flush()
        logger.info("Message %s sent from %s to %s", message.id, sender.id, data.recipient_id)
        return MessageResponse.model_validate(message)

    async def conversation(self, db: AsyncSession, user: User, other_id: uuid.UUID) -> ConversationResponse:
        result = await db.execute(
            select(Message)
            .where(
                or_(
                    and_(Message.sender_id == user.id, Message.recipient_id == other_id),
                    and_(Message.sender_id == other_id, Message.recipient_id == user.id),
                )
            )
            .order_by(Message.created_at.asc())
        )
        return ConversationResponse(
            messages=[MessageResponse.model_validate(m) for m in result.scalars().all()]
        )


# ── Singleton Instance ────────────────────────────────────────────────────
message_service = MessageService()
