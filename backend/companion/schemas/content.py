"""
Creator discovery, posts, feed and direct message schemas.
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from companion.schemas.common import Pagination, UserSummary


# ══════════════════════════════════════════════════════════════════════════
# Creators
# ══════════════════════════════════════════════════════════════════════════


class CreatorCard(BaseModel):
    """Compact creator representation for the browse grid."""
    id: uuid.UUID
    name: Optional[str] = None
    display_name: Optional[str] = None
    bio: Optional[str] = None
    profile_image: Optional[str] = None
    hourly_rate_cents: Optional[int] = None
    average_rating: Optional[float] = None
    subscriber_count: int = 0
    created_at: datetime


class CreatorListResponse(BaseModel):
    creators: List[CreatorCard]
    pagination: Pagination


class CreatorDetail(CreatorCard):
    video_intro_url: Optional[str] = None
    min_hours: int
    message_count: int = Field(default=0, description="Messages received by the creator")


# ══════════════════════════════════════════════════════════════════════════
# Posts & Feed
# ══════════════════════════════════════════════════════════════════════════


class PostCreateRequest(BaseModel):
    content: str = Field(max_length=10_000)
    image_url: Optional[str] = Field(default=None, max_length=1024)
    video_url: Optional[str] = Field(default=None, max_length=1024)
    is_subscriber_only: bool = False


class PostResponse(BaseModel):
    id: uuid.UUID
    creator_id: uuid.UUID
    creator: Optional[UserSummary] = None
    content: str
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    is_subscriber_only: bool
    likes: int
    comments: int
    created_at: datetime

    model_config = {"from_attributes": True}


class FeedResponse(BaseModel):
    posts: List[PostResponse]


class PostUploadUrlResponse(BaseModel):
    upload_url: str
    key: str
    public_url: str
    media_type: Literal["image", "video"]
    expires_in: int


# ══════════════════════════════════════════════════════════════════════════
# Direct Messages
# ══════════════════════════════════════════════════════════════════════════


class MessageSendRequest(BaseModel):
    recipient_id: uuid.UUID
    content: str = Field(max_length=5000)
    is_paid_message: bool = False
    cost_credits: int = Field(default=0, ge=0)


class MessageResponse(BaseModel):
    id: uuid.UUID
    sender_id: uuid.UUID
    recipient_id: uuid.UUID
    content: str
    is_paid_message: bool
    cost_credits: int
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ConversationResponse(BaseModel):
    messages: List[MessageResponse]
