"""
KYC submission model.

One row per user (`user_id` is unique). A rejected submission is updated
in place on resubmission rather than creating a second row, so the row
always reflects the latest attempt.
"""

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from companion.database import Base
from companion.models.types import UTCDateTime, utcnow
from companion.models.user import KycStatus, User


class IdType:
    PASSPORT = "PASSPORT"
    DRIVER_LICENSE = "DRIVER_LICENSE"
    NATIONAL_ID = "NATIONAL_ID"


class KycSubmission(Base):
    __tablename__ = "kyc_submissions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    id_type: Mapped[str] = mapped_column(String(30), nullable=False)
    government_id_number: Mapped[str] = mapped_column(String(100), nullable=False)

    # Object keys are kept next to the public URLs so documents can be
    # re-signed for admin review without parsing URLs.
    government_id_key: Mapped[str] = mapped_column(String(512), nullable=False)
    government_id_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    liveliness_key: Mapped[str] = mapped_column(String(512), nullable=False)
    liveliness_url: Mapped[str] = mapped_column(String(1024), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=KycStatus.PENDING)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    user: Mapped[User] = relationship(lazy="selectin")

    def __repr__(self) -> str:
        return f"<KycSubmission(id={self.id}, user_id={self.user_id}, status='{self.status}')>"
