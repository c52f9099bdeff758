"""
Companion Backend — Creator Discovery Service
===============================================

What:  Paginated creator directory and single creator profiles.
Who:   GET /api/creators/list and GET /api/creators/{id}.

Visibility:
    Only creators that are ACTIVE and KYC VERIFIED are listed or viewable.
    A profile view by a signed-in user (other than the creator) is
    recorded once per viewer, with `created_at` refreshed on every visit.
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from companion.exceptions import NotFoundError, PermissionDeniedError
from companion.models.content import Message, ProfileView
from companion.models.subscription import Subscription, SubscriptionStatus
from companion.models.user import KycStatus, User, UserStatus
from companion.schemas.common import Pagination
from companion.schemas.content import CreatorCard, CreatorDetail, CreatorListResponse

logger = logging.getLogger(__name__)

SORT_OPTIONS = {"newest", "popular", "name"}


def _subscriber_count():
    return (
        select(func.count(Subscription.id))
        .where(
            Subscription.creator_id == User.id,
            Subscription.status == SubscriptionStatus.ACTIVE,
        )
        .correlate(User)
        .scalar_subquery()
    )


class CreatorService:

    def _visible_filters(self):
        return (
            User.is_creator.is_(True),
            User.status == UserStatus.ACTIVE,
            User.kyc_status == KycStatus.VERIFIED,
        )

    async def list_creators(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 12,
        search: Optional[str] = None,
        sort_by: str = "newest",
    ) -> CreatorListResponse:
        filters = list(self._visible_filters())
        if search:
            term = search.strip()
            filters.append(
                or_(
                    User.name.icontains(term, autoescape=True),
                    User.bio.icontains(term, autoescape=True),
                )
            )

        subscriber_count = _subscriber_count().label("subscriber_count")
        if sort_by == "popular":
            order = [subscriber_count.desc(), User.created_at.desc()]
        elif sort_by == "name":
            order = [User.name.asc()]
        else:
            order = [User.created_at.desc()]

        total = await db.scalar(select(func.count(User.id)).where(*filters)) or 0
        result = await db.execute(
            select(User, subscriber_count)
            .where(*filters)
            .order_by(*order)
            .offset((page - 1) * limit)
            .limit(limit)
        )

        creators = [
            CreatorCard(
                id=user.id,
                name=user.name,
                display_name=user.display_name,
                bio=user.bio,
                profile_image=user.profile_image,
                hourly_rate_cents=user.hourly_rate_cents,
                average_rating=user.average_rating,
                subscriber_count=count or 0,
                created_at=user.created_at,
            )
            for user, count in result.all()
        ]
        total_pages = math.ceil(total / limit) if total else 0
        return CreatorListResponse(
            creators=creators,
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=total_pages,
                has_more=page < total_pages,
            ),
        )

    async def get_creator(
        self, db: AsyncSession, creator_id: uuid.UUID, viewer: Optional[User] = None
    ) -> CreatorDetail:
        creator = await db.get(User, creator_id)
        if creator is None or not creator.is_creator:
            raise NotFoundError(resource="creator", resource_id=str(creator_id))
        if creator.status != UserStatus.ACTIVE or creator.kyc_status != KycStatus.VERIFIED:
            raise PermissionDeniedError(message="Creator not available")

        subscribers = await db.scalar(
            select(func.count(Subscription.id)).where(
                Subscription.creator_id == creator.id,
                Subscription.status == SubscriptionStatus.ACTIVE,
            )
        )
        messages = await db.scalar(
            select(func.count(Message.id)).where(Message.recipient_id == creator.id)
        )

        if viewer is not None and viewer.id != creator.id:
            await self._record_view(db, viewer.id, creator.id)

        return CreatorDetail(
            id=creator.id,
            name=creator.name,
            display_name=creator.display_name,
            bio=creator.bio,
            profile_image=creator.profile_image,
            hourly_rate_cents=creator.hourly_rate_cents,
            average_rating=creator.average_rating,
            subscriber_count=subscribers or 0,
            created_at=creator.created_at,
            video_intro_url=creator.video_intro_url,
            min_hours=creator.min_hours,
            message_count=messages or 0,
        )

    async def _record_view(self, db: AsyncSession, viewer_id: uuid.UUID, viewed_id: uuid.UUID) -> None:
        result = await db.execute(
            select(ProfileView).where(
                ProfileView.viewer_id == viewer_id,
                ProfileView.viewed_user_id == viewed_id,
            )
        )
        view = result.scalar_one_or_none()
        if view is None:
            db.add(ProfileView(viewer_id=viewer_id, viewed_user_id=viewed_id))
        else:
            view.created_at = datetime.now(timezone.utc)
        await db.flush()


# ── Singleton Instance ────────────────────────────────────────────────────
creator_service = CreatorService()
