"""
Account, session and profile schemas.

Amounts are accepted in dollars (what a person types into a form) and
returned in cents (what is stored and charged).
"""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


# ── Sessions ──────────────────────────────────────────────────────────────


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class UserResponse(BaseModel):
    """The caller's own account, including private fields."""
    id: uuid.UUID
    email: str
    name: Optional[str] = None
    role: str
    is_creator: bool
    status: str
    kyc_status: str
    kyc_rejection_reason: Optional[str] = None
    email_verified_at: Optional[datetime] = None
    bio: Optional[str] = None
    display_name: Optional[str] = None
    profile_image: Optional[str] = None
    video_intro_url: Optional[str] = None
    hourly_rate_cents: Optional[int] = None
    min_hours: int
    average_rating: Optional[float] = None
    stripe_connect_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Token lifetime in seconds")
    user: UserResponse


# ── Profile ───────────────────────────────────────────────────────────────


class ProfileUpdateRequest(BaseModel):
    """
    Partial update: only fields present in the body are applied.
    Setting role=CREATOR also flips `is_creator` on.
    """
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    bio: Optional[str] = Field(default=None, max_length=2000)
    role: Optional[Literal["FAN", "CREATOR"]] = None
    hourly_rate: Optional[float] = Field(default=None, gt=0, le=100_000)
    profile_image: Optional[str] = Field(default=None, max_length=1024)


class CreatorSettingsRequest(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    hourly_rate: Optional[float] = Field(default=None, gt=0, le=100_000)
    video_intro_url: Optional[str] = Field(default=None, max_length=1024)


class FileTypeRequest(BaseModel):
    file_type: str = Field(description="MIME type of the file that will be uploaded")


class EmailVerifiedResponse(BaseModel):
    message: str
    email: str
