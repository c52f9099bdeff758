"""
Companion Backend — Posts & Feed Service
==========================================

What:  Creator posts (one image or one video plus text) and the fan feed.
Who:   /api/posts and /api/feed routes.

Feed Visibility:
    - public posts (is_subscriber_only = false)
    - subscriber-only posts from creators the caller actively subscribes to
    - the caller's own posts
"""

import logging

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from companion.config import settings
from companion.exceptions import PermissionDeniedError, ValidationError
from companion.models.content import Post
from companion.models.subscription import Subscription, SubscriptionStatus
from companion.models.user import KycStatus, User, UserRole
from companion.schemas.content import (
    FeedResponse,
    PostCreateRequest,
    PostResponse,
    PostUploadUrlResponse,
)
from companion.services.storage_service import POST_IMAGE_TYPES, VIDEO_TYPES, storage_service

logger = logging.getLogger(__name__)

MAX_POST_LENGTH = 5000


def _is_creator(user: User) -> bool:
    return user.is_creator or user.role == UserRole.CREATOR


class PostService:

    async def create_upload_url(self, user: User, file_type: str) -> PostUploadUrlResponse:
        if not _is_creator(user):
            raise PermissionDeniedError(message="Only creators can upload post media")

        if file_type in VIDEO_TYPES:
            media_type, allowed = "video", VIDEO_TYPES
        else:
            media_type, allowed = "image", POST_IMAGE_TYPES
        ext = storage_service.extension_for(file_type, allowed)
        key = storage_service.build_key("posts", user.id, ext, media_type)

        return PostUploadUrlResponse(
            upload_url=storage_service.presigned_put(key, file_type),
            key=key,
            public_url=storage_service.public_url(key),
            media_type=media_type,
            expires_in=settings.s3_presign_expiry,
        )

    async def create_post(self, db: AsyncSession, user: User, data: PostCreateRequest) -> PostResponse:
        """
        Raises:
            PermissionDeniedError: not a creator, or not KYC verified
                (context carries requires_verification)
            ValidationError: empty/oversized content, or not exactly one media URL
        """
        if not _is_creator(user):
            raise PermissionDeniedError(message="Only creators can create posts")
        if user.kyc_status != KycStatus.VERIFIED:
            raise PermissionDeniedError(
                message="Account verification required. Please complete verification to create posts.",
                context={"requires_verification": True},
            )

        content = data.content.strip()
        if not content:
            raise ValidationError(message="Post content is required", field="content")
        if len(content) > MAX_POST_LENGTH:
            raise ValidationError(
                message=f"Post content must be less than {MAX_POST_LENGTH} characters",
                field="content",
            )

        image_url = data.image_url or None
        video_url = data.video_url or None
        if not image_url and not video_url:
            raise ValidationError(message="Post must have either an image or video")
        if image_url and video_url:
            raise ValidationError(message="Post cannot have both image and video")

        post = Post(
            creator_id=user.id,
            creator=user,
            content=content,
            image_url=image_url,
            video_url=video_url,
            is_subscriber_only=data.is_subscriber_only,
        )
        db.add(post)
        await db.flush()
        logger.info("Post %s created by creator %s", post.id, user.id)
        return PostResponse.model_validate(post)

    async def get_feed(self, db: AsyncSession, user: User, limit: int = 20) -> FeedResponse:
        subscribed_creators = select(Subscription.creator_id).where(
            Subscription.subscriber_id == user.id,
            Subscription.status == SubscriptionStatus.ACTIVE,
        )
        result = await db.execute(
            select(Post)
            .where(
                or_(
                    Post.is_subscriber_only.is_(False),
                    Post.creator_id.in_(subscribed_creators),
                    Post.creator_id == user.id,
                )
            )
            .order_by(Post.created_at.desc())
            .limit(limit)
        )
        return FeedResponse(
            posts=[PostResponse.model_validate(post) for post in result.scalars().all()]
        )


# ── Singleton Instance ────────────────────────────────────────────────────
post_service = PostService()
