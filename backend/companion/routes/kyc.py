"""
KYC routes for applicants (/api/kyc) and reviewers (/api/admin/kyc).
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from companion.database import get_db_session
from companion.models.user import User
from companion.schemas.common import ErrorResponse, UploadUrlResponse
from companion.schemas.kyc import (
    KycApproveRequest,
    KycRejectRequest,
    KycStatusResponse,
    KycSubmissionResponse,
    KycSubmitRequest,
    KycUploadUrlRequest,
    PendingKycResponse,
)
from companion.security import get_current_user, require_admin
from companion.services.kyc_service import kyc_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["KYC"])


@router.post(
    "/kyc/upload-url",
    response_model=UploadUrlResponse,
    responses={
        400: {"description": "Unsupported document type", "model": ErrorResponse},
        503: {"description": "Object storage not configured", "model": ErrorResponse},
    },
    summary="Get a presigned URL for an ID document or selfie",
)
async def kyc_upload_url(
    body: KycUploadUrlRequest,
    user: User = Depends(get_current_user),
) -> UploadUrlResponse:
    return await kyc_service.create_upload_url(user, body.doc_type, body.file_type)


@router.post(
    "/kyc/submit",
    response_model=KycSubmissionResponse,
    responses={
        403: {"description": "Document key belongs to another account", "model": ErrorResponse},
        409: {"description": "Already pending or verified", "model": ErrorResponse},
    },
    summary="Submit identity details for review",
)
async def kyc_submit(
    body: KycSubmitRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> KycSubmissionResponse:
    return await kyc_service.submit(db, user, body)


@router.get("/kyc/status", response_model=KycStatusResponse, summary="My verification status")
async def kyc_status(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> KycStatusResponse:
    return await kyc_service.get_status(db, user)


# ── Admin review ──────────────────────────────────────────────────────────


@router.get(
    "/admin/kyc/pending",
    response_model=PendingKycResponse,
    responses={403: {"description": "Admin only", "model": ErrorResponse}},
    summary="Pending KYC submissions, oldest first",
)
async def pending_submissions(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> PendingKycResponse:
    return await kyc_service.list_pending(db)


@router.post(
    "/admin/kyc/approve",
    response_model=KycSubmissionResponse,
    responses={
        404: {"description": "Submission not found", "model": ErrorResponse},
        409: {"description": "Submission is not pending", "model": ErrorResponse},
    },
    summary="Approve a KYC submission",
)
async def approve_submission(
    body: KycApproveRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> KycSubmissionResponse:
    return await kyc_service.approve(db, admin, body.submission_id)


@router.post(
    "/admin/kyc/reject",
    response_model=KycSubmissionResponse,
    responses={
        404: {"description": "Submission not found", "model": ErrorResponse},
        409: {"description": "Submission is not pending", "model": ErrorResponse},
    },
    summary="Reject a KYC submission with a reason",
)
async def reject_submission(
    body: KycRejectRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> KycSubmissionResponse:
    return await kyc_service.reject(db, admin, body.submission_id, body.reason)
