"""
Companion Backend — User Profile Routes
=========================================

What:  The caller's profile and creator settings, profile/intro media
       uploads, and serving of locally stored files.

Upload Paths:
    - POST /api/users/upload-profile-image       presigned S3 PUT (503 without S3)
    - POST /api/users/upload-profile-image-dev   multipart, stored on local disk
    - POST /api/users/video-intro-upload-url     presigned S3 PUT for mp4/webm/mov
"""

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from companion.database import get_db_session
from companion.models.user import User
from companion.schemas.common import ErrorResponse, UploadUrlResponse
from companion.schemas.user import (
    CreatorSettingsRequest,
    FileTypeRequest,
    ProfileUpdateRequest,
    UserResponse,
)
from companion.security import get_current_user
from companion.services.file_service import file_service
from companion.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Users"])


@router.get("/users/profile", response_model=UserResponse, summary="Get my profile")
async def get_profile(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await user_service.get_profile(db, user)


@router.patch(
    "/users/profile",
    response_model=UserResponse,
    summary="Update my profile",
    description="Partial update. `role=CREATOR` also marks the account as a creator.",
)
async def update_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await user_service.update_profile(db, user, body)


@router.patch(
    "/users/creator-settings",
    response_model=UserResponse,
    responses={403: {"description": "Not a creator", "model": ErrorResponse}},
    summary="Update creator display name, rate and intro video",
)
async def update_creator_settings(
    body: CreatorSettingsRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await user_service.update_creator_settings(db, user, body)


@router.post(
    "/users/upload-profile-image",
    response_model=UploadUrlResponse,
    responses={
        400: {"description": "Unsupported image type", "model": ErrorResponse},
        503: {"description": "Object storage not configured", "model": ErrorResponse},
    },
    summary="Get a presigned URL for a profile image",
)
async def upload_profile_image(
    body: FileTypeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UploadUrlResponse:
    return await user_service.profile_image_upload_url(db, user, body.file_type)


@router.post(
    "/users/upload-profile-image-dev",
    response_model=UserResponse,
    responses={
        400: {"description": "Not an image, or larger than 5MB", "model": ErrorResponse},
        403: {"description": "Disabled in production", "model": ErrorResponse},
    },
    summary="Upload a profile image to local storage (development)",
)
async def upload_profile_image_dev(
    file: UploadFile = File(..., description="Image file (max 5MB)"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    content = await file.read()
    logger.info(
        "Received dev profile upload: filename=%s, size=%d bytes",
        file.filename or "unknown",
        len(content),
    )
    try:
        return await user_service.upload_profile_image_dev(
            db,
            user,
            filename=file.filename or "upload.jpg",
            content=content,
            content_length=file.size,
        )
    finally:
        await file.close()


@router.post(
    "/users/video-intro-upload-url",
    response_model=UploadUrlResponse,
    summary="Get a presigned URL for a creator intro video",
)
async def video_intro_upload_url(
    body: FileTypeRequest,
    user: User = Depends(get_current_user),
) -> UploadUrlResponse:
    return await user_service.video_intro_upload_url(user, body.file_type)


@router.get(
    "/files/{file_path:path}",
    summary="Serve locally stored files",
    responses={
        200: {"description": "File content"},
        400: {"description": "Path outside storage root", "model": ErrorResponse},
        404: {"description": "File not found", "model": ErrorResponse},
    },
)
async def serve_file(file_path: str) -> FileResponse:
    full_path = file_service.resolve(file_path)
    return FileResponse(
        path=str(full_path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
