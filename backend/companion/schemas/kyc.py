"""
KYC schemas: document upload URLs, submission, status and admin review.
"""

import uuid
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class KycUploadUrlRequest(BaseModel):
    doc_type: Literal["id", "selfie"] = Field(description="Which document is being uploaded")
    file_type: str = Field(description="MIME type: image/jpeg, image/png, image/webp or application/pdf")


class KycSubmitRequest(BaseModel):
    """
    What:  Identity details plus the object keys returned by /kyc/upload-url.
    Why:   Every field is mandatory; whitespace-only values count as missing.
    """
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    date_of_birth: date
    id_type: Literal["PASSPORT", "DRIVER_LICENSE", "NATIONAL_ID"]
    government_id_number: str = Field(min_length=1, max_length=100)
    government_id_key: str = Field(min_length=1, max_length=512)
    liveliness_key: str = Field(min_length=1, max_length=512)

    @field_validator(
        "first_name", "last_name", "government_id_number", "government_id_key", "liveliness_key"
    )
    @classmethod
    def strip_required(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Field is required")
        return stripped


class KycSubmissionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    first_name: str
    last_name: str
    date_of_birth: date
    id_type: str
    status: str
    rejection_reason: Optional[str] = None
    government_id_url: str
    liveliness_url: str
    submitted_at: datetime
    verified_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class KycStatusResponse(BaseModel):
    status: str = Field(description="NOT_STARTED, PENDING, VERIFIED or REJECTED")
    submission: Optional[KycSubmissionResponse] = None


class PendingKycItem(KycSubmissionResponse):
    user_email: str
    user_name: Optional[str] = None
    government_id_view_url: Optional[str] = Field(
        default=None, description="Short-lived signed URL for the ID document"
    )
    liveliness_view_url: Optional[str] = Field(
        default=None, description="Short-lived signed URL for the selfie"
    )


class PendingKycResponse(BaseModel):
    submissions: List[PendingKycItem]


class KycApproveRequest(BaseModel):
    submission_id: uuid.UUID


class KycRejectRequest(BaseModel):
    submission_id: uuid.UUID
    reason: str = Field(min_length=1, max_length=2000)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Rejection reason is required")
        return stripped
