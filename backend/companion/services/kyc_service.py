"""
Companion Backend — KYC Service
=================================

What:  Identity verification: document upload URLs, submission, status, and
       the admin review queue (approve / reject).
Why:   Creators must be VERIFIED before they are listed, booked or allowed
       to publish posts.

State Machine (kyc_submissions.status, mirrored on users.kyc_status):
    (none) ──submit──▶ PENDING ──approve──▶ VERIFIED
                          │
                          └──reject──▶ REJECTED ──submit──▶ PENDING

    Approve/reject are only allowed from PENDING. Resubmission after
    REJECTED updates the same row and clears the rejection reason.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from companion.config import settings
from companion.exceptions import ConflictError, NotFoundError, PermissionDeniedError
from companion.models.kyc import KycSubmission
from companion.models.user import KycStatus, User
from companion.schemas.common import UploadUrlResponse
from companion.schemas.kyc import (
    KycStatusResponse,
    KycSubmissionResponse,
    KycSubmitRequest,
    PendingKycItem,
    PendingKycResponse,
)
from companion.services.email_service import email_service
from companion.services.storage_service import KYC_TYPES, storage_service

logger = logging.getLogger(__name__)


class KycService:

    # ── Applicant side ────────────────────────────────────────────────────

    async def create_upload_url(self, user: User, doc_type: str, file_type: str) -> UploadUrlResponse:
        ext = storage_service.extension_for(file_type, KYC_TYPES)
        key = storage_service.build_key("kyc", user.id, ext, doc_type)
        upload_url = storage_service.presigned_put(key, file_type, expires_in=3600)
        logger.info("KYC %s upload URL issued for user %s", doc_type, user.id)
        return UploadUrlResponse(
            upload_url=upload_url,
            key=key,
            public_url=storage_service.public_url(key),
            expires_in=3600,
        )

    def _check_key_owner(self, user: User, key: str) -> None:
        if not key.startswith(f"kyc/{user.id}/"):
            raise PermissionDeniedError(
                message="Document key does not belong to this account",
                context={"key": key},
            )

    async def get_submission(self, db: AsyncSession, user_id: uuid.UUID) -> Optional[KycSubmission]:
        result = await db.execute(select(KycSubmission).where(KycSubmission.user_id == user_id))
        return result.scalar_one_or_none()

    async def submit(self, db: AsyncSession, user: User, data: KycSubmitRequest) -> KycSubmissionResponse:
        """
        Create (or, after a rejection, replace) the caller's submission.

        Raises:
            PermissionDeniedError: a document key outside kyc/{user_id}/
            ConflictError: a submission is already pending or verified
        """
        self._check_key_owner(user, data.government_id_key)
        self._check_key_owner(user, data.liveliness_key)

        submission = await self.get_submission(db, user.id)
        if submission is not None and submission.status == KycStatus.PENDING:
            raise ConflictError(message="KYC already submitted and is pending review")
        if submission is not None and submission.status == KycStatus.VERIFIED:
            raise ConflictError(message="Your account is already verified")

        fields = dict(
            first_name=data.first_name,
            last_name=data.last_name,
            date_of_birth=data.date_of_birth,
            id_type=data.id_type,
            government_id_number=data.government_id_number,
            government_id_key=data.government_id_key,
            government_id_url=storage_service.public_url(data.government_id_key),
            liveliness_key=data.liveliness_key,
            liveliness_url=storage_service.public_url(data.liveliness_key),
            status=KycStatus.PENDING,
            rejection_reason=None,
            verified_at=None,
        )
        if submission is None:
            submission = KycSubmission(user_id=user.id, user=user, **fields)
            db.add(submission)
        else:
            for name, value in fields.items():
                setattr(submission, name, value)
            submission.submitted_at = datetime.now(timezone.utc)

        user.kyc_status = KycStatus.PENDING
        user.kyc_rejection_reason = None
        await db.flush()
        logger.info("KYC submitted by user %s (submission %s)", user.id, submission.id)

        await email_service.send_kyc_submitted_email(user.email, user.name or "User")
        return KycSubmissionResponse.model_validate(submission)

    async def get_status(self, db: AsyncSession, user: User) -> KycStatusResponse:
        submission = await self.get_submission(db, user.id)
        if submission is None:
            return KycStatusResponse(status=KycStatus.NOT_STARTED)
        return KycStatusResponse(
            status=submission.status,
            submission=KycSubmissionResponse.model_validate(submission),
        )

    # ── Admin review ──────────────────────────────────────────────────────

    def _view_url(self, key: str) -> Optional[str]:
        if not storage_service.is_configured:
            return None
        return storage_service.presigned_get(key, expires_in=settings.s3_presign_expiry)

    async def list_pending(self, db: AsyncSession) -> PendingKycResponse:
        result = await db.execute(
            select(KycSubmission)
            .where(KycSubmission.status == KycStatus.PENDING)
            .order_by(KycSubmission.submitted_at.asc())
        )
        items = []
        for submission in result.scalars().all():
            base = KycSubmissionResponse.model_validate(submission).model_dump()
            items.append(
                PendingKycItem(
                    **base,
                    user_email=submission.user.email,
                    user_name=submission.user.name,
                    government_id_view_url=self._view_url(submission.government_id_key),
                    liveliness_view_url=self._view_url(submission.liveliness_key),
                )
            )
        return PendingKycResponse(submissions=items)

    async def _pending_submission(self, db: AsyncSession, submission_id: uuid.UUID) -> KycSubmission:
        submission = await db.get(KycSubmission, submission_id)
        if submission is None:
            raise NotFoundError(resource="KYC submission", resource_id=str(submission_id))
        if submission.status != KycStatus.PENDING:
            raise ConflictError(
                message=f"KYC submission is already {submission.status.lower()}",
                context={"status": submission.status},
            )
        return submission

    async def approve(self, db: AsyncSession, admin: User, submission_id: uuid.UUID) -> KycSubmissionResponse:
        submission = await self._pending_submission(db, submission_id)
        now = datetime.now(timezone.utc)

        submission.status = KycStatus.VERIFIED
        submission.verified_at = now
        submission.rejection_reason = None

        user = submission.user
        user.kyc_status = KycStatus.VERIFIED
        user.kyc_verified_at = now
        user.kyc_rejection_reason = None
        await db.flush()
        logger.info("KYC submission %s approved by admin %s", submission.id, admin.id)

        await email_service.send_kyc_approved_email(user.email, user.name or "User")
        return KycSubmissionResponse.model_validate(submission)

    async def reject(
        self, db: AsyncSession, admin: User, submission_id: uuid.UUID, reason: str
    ) -> KycSubmissionResponse:
        submission = await self._pending_submission(db, submission_id)

        submission.status = KycStatus.REJECTED
        submission.rejection_reason = reason
        submission.verified_at = None

        user = submission.user
        user.kyc_status = KycStatus.REJECTED
        user.kyc_rejection_reason = reason
        await db.flush()
        logger.info("KYC submission %s rejected by admin %s", submission.id, admin.id)

        await email_service.send_kyc_rejected_email(user.email, user.name or "User", reason)
        return KycSubmissionResponse.model_validate(submission)


# ── Singleton Instance ────────────────────────────────────────────────────
kyc_service = KycService()
