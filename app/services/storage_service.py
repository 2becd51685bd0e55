"""
Local file storage for user images.

Uploads are checked against a MIME allow-list and, when enabled, the leading
bytes are sniffed with libmagic so a renamed file cannot pass as an image.
"""

import logging
import secrets
from pathlib import Path
from typing import Optional

import aiofiles

from app.core.config import Settings, get_settings
from app.core.exceptions import BadRequestException

logger = logging.getLogger(__name__)

# libmagic only needs the header to identify a format
SNIFF_BYTES = 2048

# Formats that libmagic may report under an alternate name
MIME_ALIASES = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
    "image/x-ms-bmp": "image/bmp",
    "image/x-bmp": "image/bmp",
}

MIME_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
    "image/tiff": ".tiff",
}


def _canonical_mime(mime_type: str) -> str:
    mime_type = (mime_type or "").split(";")[0].strip().lower()
    return MIME_ALIASES.get(mime_type, mime_type)


def _sniff_mime(content: bytes) -> str:
    """Detect the MIME type from file content using libmagic."""
    import magic  # pip install python-magic (needs the system libmagic)

    return magic.from_buffer(content[:SNIFF_BYTES], mime=True)


class StorageService:
    """Validates and writes uploads under ``UPLOAD_DIR``."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.base_dir = Path(self.settings.upload_dir)

    def validate(self, content: bytes, declared_mime: str) -> str:
        """Return the canonical MIME type or raise ``BadRequestException``."""
        if not content:
            raise BadRequestException("No image file provided")
        if len(content) > self.settings.max_file_size_bytes:
            raise BadRequestException(
                f"File too large. Maximum size is {self.settings.max_file_size_mb}MB"
            )

        mime_type = _canonical_mime(declared_mime)
        if mime_type not in self.settings.allowed_mime_types_list:
            raise BadRequestException(f"Invalid file format: {declared_mime or 'unknown'}")

        if self.settings.enable_magic_number_check:
            detected = _canonical_mime(_sniff_mime(content))
            if detected != mime_type:
                logger.warning(f"Upload rejected: declared {mime_type}, content is {detected}")
                raise BadRequestException("File content does not match its declared type")

        return mime_type

    async def save(
        self,
        owner_id: str,
        content: bytes,
        declared_mime: str,
        original_filename: Optional[str] = None,
        folder: str = "general",
    ) -> str:
        """
        Validate and store an upload.

        Returns:
            Relative path ``uploads/<folder>/<owner_id>/<name>``
        """
        mime_type = self.validate(content, declared_mime)

        suffix = Path(original_filename or "").suffix.lower()
        if suffix not in MIME_EXTENSIONS.values():
            suffix = MIME_EXTENSIONS.get(mime_type, "")
        name = f"{secrets.token_hex(8)}_{secrets.token_hex(4)}{suffix}"

        target_dir = self.base_dir / folder / owner_id
        target_dir.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(target_dir / name, "wb") as f:
            await f.write(content)

        relative_path = f"uploads/{folder}/{owner_id}/{name}"
        logger.info(f"Stored {mime_type} upload ({len(content)} bytes) at {relative_path}")
        return relative_path


_storage_service: Optional[StorageService] = None


def get_storage_service() -> StorageService:
    """Get or create the storage service singleton."""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
