"""
Companion Backend — Object Storage Service (S3)
=================================================

What:  Issues presigned PUT URLs for direct browser-to-S3 uploads and
       builds the public URLs stored in the database.
Why:   Identity documents and media never pass through the API process;
       the API only decides who may upload what, and where.
How:   boto3 S3 client with SigV4 presigning. Keys are namespaced by
       purpose and owner so that ownership can be checked from the key.

Key Layout:
    kyc/{user_id}/{id|selfie}/{epoch_ms}.{ext}
    profiles/{user_id}/{epoch_ms}.{ext}
    posts/{user_id}/{image|video}/{epoch_ms}.{ext}
    video-intros/{user_id}/{epoch_ms}.{ext}

Security Model:
    - Content type is fixed in the signature, so the browser can't
      upload a different type than the one that was validated here
    - URLs expire (default 1 hour)
"""

import logging
import time
import uuid
from typing import Dict, Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from companion.config import settings
from companion.exceptions import (
    FileStorageError,
    StorageNotConfiguredError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# ── Allowed Content Types per Upload Purpose ─────────────────────────────
IMAGE_TYPES: Dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}
KYC_TYPES: Dict[str, str] = {**IMAGE_TYPES, "application/pdf": "pdf"}
POST_IMAGE_TYPES: Dict[str, str] = {**IMAGE_TYPES, "image/gif": "gif"}
VIDEO_TYPES: Dict[str, str] = {
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
}


class StorageService:
    """
    Thin wrapper around a boto3 S3 client.

    The client is created lazily so that importing the module never
    requires credentials; `is_configured` tells routes whether uploads are
    available at all.
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
    ):
        self.bucket = bucket if bucket is not None else settings.aws_s3_bucket
        self.region = region if region is not None else settings.aws_region
        self._access_key_id = (
            access_key_id if access_key_id is not None else settings.aws_access_key_id
        )
        self._secret_access_key = (
            secret_access_key if secret_access_key is not None else settings.aws_secret_access_key
        )
        self._client = None

    @property
    def is_configured(self) -> bool:
        return bool(self.bucket and self._access_key_id and self._secret_access_key)

    def _s3(self):
        if not self.is_configured:
            raise StorageNotConfiguredError()
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.region,
                aws_access_key_id=self._access_key_id,
                aws_secret_access_key=self._secret_access_key,
                config=Config(signature_version="s3v4"),
            )
        return self._client

    # ── Keys & URLs ───────────────────────────────────────────────────────

    @staticmethod
    def extension_for(content_type: str, allowed: Dict[str, str]) -> str:
        """
        Map a declared MIME type to its file extension.

        Raises:
            ValidationError if the type is not in `allowed`
        """
        ext = allowed.get((content_type or "").lower())
        if ext is None:
            raise ValidationError(
                message=(
                    f"File type '{content_type}' is not supported. "
                    f"Allowed types: {', '.join(sorted(allowed))}"
                ),
                field="file_type",
                context={"allowed": sorted(allowed)},
            )
        return ext

    @staticmethod
    def build_key(prefix: str, owner_id: uuid.UUID, ext: str, *parts: str) -> str:
        segments = [prefix, str(owner_id), *parts, f"{int(time.time() * 1000)}.{ext}"]
        return "/".join(segments)

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    # ── Presigning ────────────────────────────────────────────────────────

    def presigned_put(self, key: str, content_type: str, expires_in: Optional[int] = None) -> str:
        """
        Generate a presigned PUT URL for `key`.

        boto3 signs locally (no network call), so this stays synchronous.
        """
        expires = expires_in or settings.s3_presign_expiry
        try:
            url = self._s3().generate_presigned_url(
                "put_object",
                Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=expires,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Failed to presign upload for %s: %s", key, str(e))
            raise FileStorageError(
                message="Could not create an upload URL. Please try again.",
                context={"key": key, "error": str(e)},
            )
        logger.info("Issued presigned upload URL for %s (expires in %ds)", key, expires)
        return url

    def presigned_get(self, key: str, expires_in: Optional[int] = None) -> str:
        """Short-lived read URL, used for private documents (KYC review)."""
        try:
            return self._s3().generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in or settings.s3_presign_expiry,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Failed to presign download for %s: %s", key, str(e))
            raise FileStorageError(
                message="Could not create a download URL.",
                context={"key": key, "error": str(e)},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
storage_service = StorageService()
