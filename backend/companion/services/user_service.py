"""
Companion Backend — User Profile Service
==========================================

What:  Reads and edits the caller's own profile, creator settings and
       profile media.
Who:   /api/users routes.

Profile Media:
    Production: presigned S3 PUT (upload-profile-image, video-intro-upload-url)
    Development: multipart upload stored on local disk (file_service.py)
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from companion.config import settings
from companion.exceptions import PermissionDeniedError, StorageNotConfiguredError
from companion.models.kyc import KycSubmission
from companion.models.user import User, UserRole
from companion.schemas.common import UploadUrlResponse
from companion.schemas.user import CreatorSettingsRequest, ProfileUpdateRequest, UserResponse
from companion.services.file_service import file_service
from companion.services.storage_service import IMAGE_TYPES, VIDEO_TYPES, storage_service

logger = logging.getLogger(__name__)


def dollars_to_cents(amount: float) -> int:
    return int(round(amount * 100))


class UserService:

    async def get_profile(self, db: AsyncSession, user: User) -> UserResponse:
        """
        The caller's profile, with `kyc_status` re-synced from the KYC
        submission when the two have drifted apart.
        """
        result = await db.execute(
            select(KycSubmission.status).where(KycSubmission.user_id == user.id)
        )
        submission_status: Optional[str] = result.scalar_one_or_none()
        if submission_status is not None and submission_status != user.kyc_status:
            logger.info(
                "Syncing kyc_status for user %s: %s -> %s",
                user.id,
                user.kyc_status,
                submission_status,
            )
            user.kyc_status = submission_status
            await db.flush()
        return UserResponse.model_validate(user)

    async def update_profile(
        self, db: AsyncSession, user: User, data: ProfileUpdateRequest
    ) -> UserResponse:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        if "name" in changes:
            user.name = changes["name"].strip()
        if "bio" in changes:
            user.bio = changes["bio"]
        if "role" in changes:
            user.role = changes["role"]
            user.is_creator = changes["role"] == UserRole.CREATOR
        if "hourly_rate" in changes:
            user.hourly_rate_cents = dollars_to_cents(changes["hourly_rate"])
        if "profile_image" in changes:
            user.profile_image = changes["profile_image"]

        await db.flush()
        logger.info("Profile updated for user %s: %s", user.id, sorted(changes))
        return UserResponse.model_validate(user)

    async def update_creator_settings(
        self, db: AsyncSession, user: User, data: CreatorSettingsRequest
    ) -> UserResponse:
        if not user.is_creator:
            raise PermissionDeniedError(message="Only creators can edit creator settings")

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "display_name" in changes:
            user.display_name = changes["display_name"].strip()
        if "hourly_rate" in changes:
            user.hourly_rate_cents = dollars_to_cents(changes["hourly_rate"])
        if "video_intro_url" in changes:
            user.video_intro_url = changes["video_intro_url"]

        await db.flush()
        return UserResponse.model_validate(user)

    # ── Media ─────────────────────────────────────────────────────────────

    async def profile_image_upload_url(
        self, db: AsyncSession, user: User, file_type: str
    ) -> UploadUrlResponse:
        """
        Presign a profile image upload and point `profile_image` at it.

        The URL is stored up front; the client uploads straight to S3.
        """
        if not storage_service.is_configured:
            raise StorageNotConfiguredError(
                message="File storage is not configured. Use the development upload instead."
            )
        ext = storage_service.extension_for(file_type, IMAGE_TYPES)
        key = storage_service.build_key("profiles", user.id, ext)
        upload_url = storage_service.presigned_put(key, file_type)
        public_url = storage_service.public_url(key)

        user.profile_image = public_url
        await db.flush()

        return UploadUrlResponse(
            upload_url=upload_url,
            key=key,
            public_url=public_url,
            expires_in=settings.s3_presign_expiry,
        )

    async def video_intro_upload_url(self, user: User, file_type: str) -> UploadUrlResponse:
        if not user.is_creator:
            raise PermissionDeniedError(message="Only creators can upload an intro video")
        ext = storage_service.extension_for(file_type, VIDEO_TYPES)
        key = storage_service.build_key("video-intros", user.id, ext)
        return UploadUrlResponse(
            upload_url=storage_service.presigned_put(key, file_type),
            key=key,
            public_url=storage_service.public_url(key),
            expires_in=settings.s3_presign_expiry,
        )

    async def upload_profile_image_dev(
        self,
        db: AsyncSession,
        user: User,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> UserResponse:
        if settings.is_production:
            raise PermissionDeniedError(message="Local uploads are disabled in production")

        absolute_path, relative_path = await file_service.validate_and_store(
            owner_id=user.id,
            filename=filename,
            content=content,
            content_length=content_length,
        )
        try:
            user.profile_image = f"/api/files/{relative_path}"
            await db.flush()
        except Exception:
            await file_service.cleanup_file(absolute_path)
            raise
        return UserResponse.model_validate(user)


# ── Singleton Instance ────────────────────────────────────────────────────
user_service = UserService()
