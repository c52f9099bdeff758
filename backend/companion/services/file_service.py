"""
Companion Backend — Local File Storage Service
================================================

What:  Validates and stores profile images on local disk.
Why:   Development machines usually have no S3 bucket; this lets the
       profile editor work end-to-end without one. Production uses
       presigned S3 uploads (storage_service.py) instead.
How:   Validates extension, size and real MIME type, then writes the file
       with aiofiles under `{storage_root}/profiles/{user_id}/`.
Who:   POST /api/users/upload-profile-image-dev and GET /api/files/{path}.

Security Model:
    1. Extension check:   Fast rejection of obviously wrong files
    2. MIME type check:   libmagic inspects the header bytes
    3. Size check:        5MB by default
    4. UUID filename:     No user input ends up in the path
    5. Path guard:        Served paths must resolve inside storage_root
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
import magic

from companion.config import settings
from companion.exceptions import FileStorageError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
ALLOWED_MIME_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".gif"}


class FileService:
    """
    Manages local profile image validation, storage and serving.

    Directory Structure:
        storage/
        └── profiles/
            └── <user uuid>/
                ├── a1b2c3d4-....jpg
                └── e5f6g7h8-....png
    """

    def __init__(self, storage_root: Optional[str] = None):
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    def validate_extension(self, filename: str) -> str:
        """
        Returns the normalized extension (lowercase with dot).

        Raises:
            ValidationError if the extension is not an image type we accept
        """
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext or 'none'}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="file",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        max_mb = settings.max_file_size / (1024 * 1024)

        if actual_size == 0:
            raise ValidationError(message="Uploaded file is empty.", field="file")

        if content_length and content_length > settings.max_file_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB. Please upload a smaller image.",
                field="file",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > settings.max_file_size:
            raise ValidationError(
                message=f"File size ({actual_size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="file",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def validate_mime_type(self, file_content: bytes) -> str:
        """
        Validate actual MIME type by inspecting file content bytes.

        Returns:
            The extension matching the detected type (e.g. ".png"), which is
            used for the stored filename instead of the client's extension.
        """
        try:
            mime_type = magic.from_buffer(file_content, mime=True)
        except Exception as e:
            logger.error("MIME type detection failed: %s", str(e))
            raise FileStorageError(
                message="Could not verify file type. Please try again.",
                context={"error": str(e)},
            )

        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=f"File content type '{mime_type}' is not supported. The file must be an image.",
                field="file",
                context={"detected_mime": mime_type, "allowed": list(ALLOWED_MIME_TYPES)},
            )
        return ALLOWED_MIME_TYPES[mime_type]

    def _generate_storage_path(self, owner_id: uuid.UUID, extension: str) -> Tuple[Path, str]:
        relative_path = f"profiles/{owner_id}/{uuid.uuid4()}{extension}"
        return self.storage_root / relative_path, relative_path

    async def store_file(self, content: bytes, owner_id: uuid.UUID, extension: str) -> Tuple[str, str]:
        """
        Write validated content to disk.

        Returns:
            Tuple of (absolute_path, relative_path)
        """
        absolute_path, relative_path = self._generate_storage_path(owner_id, extension)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            )

        logger.info("File stored: %s (%d bytes)", relative_path, len(content))
        return str(absolute_path), relative_path

    async def cleanup_file(self, file_path: str) -> None:
        """Best-effort removal of a previously stored file."""
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))

    async def validate_and_store(
        self,
        owner_id: uuid.UUID,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> Tuple[str, str]:
        """
        Complete validation and storage pipeline, cheapest check first.

        Returns:
            Tuple of (absolute_path, relative_path)
        """
        self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        ext = self.validate_mime_type(content)
        return await self.store_file(content, owner_id, ext)

    def resolve(self, relative_path: str) -> Path:
        """
        Map a served path back to disk.

        Raises:
            ValidationError on path traversal, NotFoundError if missing
        """
        full_path = (self.storage_root / relative_path).resolve()
        if not full_path.is_relative_to(self.storage_root):
            raise ValidationError(message="Invalid file path")
        if not full_path.is_file():
            raise NotFoundError(resource="file", resource_id=relative_path)
        return full_path


# ── Singleton Instance ────────────────────────────────────────────────────
file_service = FileService()
