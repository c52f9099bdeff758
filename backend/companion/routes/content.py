"""
Creator directory, posts, feed and direct messages.
"""

from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from companion.database import get_db_session
from companion.models.user import User
from companion.schemas.common import ErrorResponse
from companion.schemas.content import (
    ConversationResponse,
    CreatorDetail,
    CreatorListResponse,
    FeedResponse,
    MessageResponse,
    MessageSendRequest,
    PostCreateRequest,
    PostResponse,
    PostUploadUrlResponse,
)
from companion.schemas.user import FileTypeRequest
from companion.security import get_current_user, get_optional_user
from companion.services.creator_service import creator_service
from companion.services.message_service import message_service
from companion.services.post_service import post_service

router = APIRouter(prefix="/api", tags=["Creators & Content"])


# ── Creators ──────────────────────────────────────────────────────────────


@router.get("/creators/list", response_model=CreatorListResponse, summary="Browse verified creators")
async def list_creators(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=50),
    search: Optional[str] = Query(default=None, max_length=100),
    sort_by: Literal["newest", "popular", "name"] = Query(default="newest"),
    db: AsyncSession = Depends(get_db_session),
) -> CreatorListResponse:
    return await creator_service.list_creators(
        db, page=page, limit=limit, search=search, sort_by=sort_by
    )


@router.get(
    "/creators/{creator_id}",
    response_model=CreatorDetail,
    responses={
        403: {"description": "Creator not available", "model": ErrorResponse},
        404: {"description": "Creator not found", "model": ErrorResponse},
    },
    summary="Creator profile",
)
async def get_creator(
    creator_id: UUID,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> CreatorDetail:
    """Signed-in viewers other than the creator are recorded as a profile view."""
    return await creator_service.get_creator(db, creator_id, viewer)


# ── Posts & Feed ──────────────────────────────────────────────────────────


@router.post(
    "/posts/upload-url",
    response_model=PostUploadUrlResponse,
    responses={403: {"description": "Creators only", "model": ErrorResponse}},
    summary="Presigned URL for post media",
)
async def post_upload_url(
    body: FileTypeRequest,
    user: User = Depends(get_current_user),
) -> PostUploadUrlResponse:
    return await post_service.create_upload_url(user, body.file_type)


@router.post(
    "/posts",
    response_model=PostResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid content or media", "model": ErrorResponse},
        403: {"description": "Not a verified creator", "model": ErrorResponse},
    },
    summary="Publish a post",
)
async def create_post(
    body: PostCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> PostResponse:
    return await post_service.create_post(db, user, body)


@router.get("/feed", response_model=FeedResponse, summary="My feed, newest first")
async def get_feed(
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FeedResponse:
    return await post_service.get_feed(db, user, limit=limit)


# ── Messages ──────────────────────────────────────────────────────────────


@router.post(
    "/messages/send",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"description": "No active subscription", "model": ErrorResponse}},
    summary="Message a creator you subscribe to",
)
async def send_message(
    body: MessageSendRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await message_service.send(db, user, body)


@router.get("/messages/{user_id}", response_model=ConversationResponse, summary="Conversation with a user")
async def get_conversation(
    user_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ConversationResponse:
    return await message_service.conversation(db, user, user_id)
