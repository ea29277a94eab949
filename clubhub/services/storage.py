from __future__ import annotations

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from clubhub.core.config import settings
from clubhub.services.errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_RECEIPT_MIME_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
}
ALLOWED_RECEIPT_EXTENSIONS = {".pdf", ".jpg", ".jpeg", ".png", ".gif", ".webp"}


@dataclass
class UploadedReceipt:
    filename: str
    content_type: Optional[str]
    data: bytes


@dataclass
class StoredFile:
    url: str
    path: Path
    size: int


class LocalFileStorage:
    """Disk-backed file storage; files are served back under `public_prefix`."""

    def __init__(
        self,
        root: str | Path,
        public_prefix: str = "/uploads",
        allowed_suffixes: Optional[set[str]] = None,
    ) -> None:
        self.root = Path(root)
        self.public_prefix = public_prefix.rstrip("/")
        self.allowed_suffixes = allowed_suffixes

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def _suffix(self, original_name: str) -> str:
        ext = Path(original_name).suffix.lower()
        if self.allowed_suffixes is not None and ext not in self.allowed_suffixes:
            return ""
        return ext

    async def save(self, folder: str, original_name: str, data: bytes) -> StoredFile:
        # files are served back as-is, so an unlisted suffix (.html, .svg) is dropped
        ext = self._suffix(original_name)
        name = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}{ext}"
        path = self.root / folder / name
        await asyncio.to_thread(self._write, path, data)
        logger.info("[storage] saved %s (%d bytes)", path, len(data))
        return StoredFile(url=f"{self.public_prefix}/{folder}/{name}", path=path, size=len(data))


def get_storage() -> LocalFileStorage:
    return LocalFileStorage(settings.UPLOAD_DIR, allowed_suffixes=ALLOWED_RECEIPT_EXTENSIONS)


def validate_receipt_upload(upload: UploadedReceipt) -> None:
    ext = Path(upload.filename or "").suffix.lower()
    mime = (upload.content_type or "").lower()
    if mime not in ALLOWED_RECEIPT_MIME_TYPES and ext not in ALLOWED_RECEIPT_EXTENSIONS:
        raise ValidationError(
            "Only PDF and image files (JPG, PNG, GIF, WEBP) are allowed for receipt upload"
        )
    if not upload.data:
        raise ValidationError("Uploaded receipt file is empty")
    if len(upload.data) > settings.RECEIPT_MAX_BYTES:
        limit_mb = settings.RECEIPT_MAX_BYTES / (1024 * 1024)
        raise ValidationError(f"Receipt file is too large (max {limit_mb:g} MB)")


async def store_receipt_upload(upload: UploadedReceipt) -> StoredFile:
    validate_receipt_upload(upload)
    return await get_storage().save("receipts", upload.filename, upload.data)
