"""
Companion Backend — Shared Pydantic Schemas
=============================================

What:  Response shapes reused across resources: errors, health, pagination,
       upload URLs and the compact user summary embedded in other payloads.
Why:   One definition per API contract keeps the OpenAPI document and the
       frontend types consistent.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Embedded Models
# ══════════════════════════════════════════════════════════════════════════


class UserSummary(BaseModel):
    """
    What:  The minimum needed to render an avatar and a name.
    Who:   Embedded in bookings, chat lines, reviews, posts, subscriptions.
    Why:   Never leaks email, Stripe ids or KYC state of the other party.
    """
    id: uuid.UUID
    name: Optional[str] = None
    display_name: Optional[str] = None
    profile_image: Optional[str] = None

    model_config = {"from_attributes": True}


class Pagination(BaseModel):
    page: int = Field(description="Current page (1-based)")
    limit: int = Field(description="Items per page")
    total: int = Field(description="Total matching items")
    total_pages: int = Field(description="Number of pages at this limit")
    has_more: bool = Field(description="Whether a next page exists")


class UploadUrlResponse(BaseModel):
    """
    What:  A presigned S3 PUT URL plus where the object will be readable.
    How:   Client PUTs the raw bytes to `upload_url` with the same
           Content-Type it declared, then sends `key` (or `public_url`)
           back to the API.
    """
    upload_url: str = Field(description="Presigned PUT URL")
    key: str = Field(description="Object key inside the bucket")
    public_url: str = Field(description="URL the object is served from after upload")
    expires_in: int = Field(description="Seconds until upload_url expires")


# ══════════════════════════════════════════════════════════════════════════
# Error & Health
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Example:
        {
            "error": "conflict",
            "message": "Booking is already APPROVED",
            "details": {"status": "APPROVED"},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    payments: str = Field(description="Stripe circuit state: available, circuit_open, unconfigured")
    storage: str = Field(description="Object storage: configured, unconfigured")
    uptime_seconds: float = Field(description="Seconds since service started")
