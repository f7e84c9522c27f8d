"""Promotional file storage on top of Django's ``default_storage``.

Files live under ``promotions/<business_id>/<uuid>.<ext>``.  Images must be
smaller than ``PROMOTION_IMAGE_MAX_BYTES`` and PDFs smaller than
``PROMOTION_PDF_MAX_BYTES``; any other content type is rejected.
"""

from __future__ import annotations

import mimetypes
import uuid
from typing import Any, Dict, Optional

import structlog
from django.conf import settings
from django.core.exceptions import SuspiciousOperation
from django.core.files.storage import Storage, default_storage

from modules.businesses.exceptions import UploadFailed, UploadTooLarge

logger = structlog.get_logger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
IMAGE_CONTENT_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif"})


def resolve_content_type(upload: Any) -> str:
    """Content type declared by the client, or guessed from the file name."""
    declared = getattr(upload, "content_type", None)
    if declared:
        return declared.split(";")[0].strip().lower()
    guessed, _ = mimetypes.guess_type(getattr(upload, "name", "") or "")
    return guessed or ""


def size_limit_for(content_type: str) -> int:
    if content_type == PDF_CONTENT_TYPE:
        return settings.PROMOTION_PDF_MAX_BYTES
    if content_type in IMAGE_CONTENT_TYPES:
        return settings.PROMOTION_IMAGE_MAX_BYTES
    raise UploadFailed(f"Unsupported file type: {content_type or 'unknown'}.")


class PromotionStorage:
    """Uploads and deletes promotional files for businesses."""

    prefix = "promotions"

    def __init__(self, storage: Optional[Storage] = None) -> None:
        self._storage = storage or default_storage

    def upload(self, business_id: Any, upload: Any) -> Dict[str, str]:
        """Store ``upload`` and return its ``{name, url, path}`` descriptor.

        Raises:
            UploadTooLarge: the file is not below the cap for its type.
            UploadFailed: unsupported type or the storage backend errored.
        """
        original_name = getattr(upload, "name", "") or "upload"
        content_type = resolve_content_type(upload)
        limit = size_limit_for(content_type)
        size = getattr(upload, "size", None) or 0
        log = logger.bind(business_id=str(business_id), file_name=original_name, size=size)

        if size >= limit:
            log.warning("promotion.too_large", limit=limit)
            raise UploadTooLarge(
                f"{original_name} is {size} bytes; the limit is {limit} bytes."
            )

        extension = original_name.rsplit(".", 1)[-1].lower() if "." in original_name else "bin"
        target = f"{self.prefix}/{business_id}/{uuid.uuid4()}.{extension}"
        try:
            path = self._storage.save(target, upload)
            url = self._storage.url(path)
        except (OSError, SuspiciousOperation) as exc:
            log.error("promotion.upload_failed", error=str(exc))
            raise UploadFailed(f"Could not store {original_name}.") from exc

        log.info("promotion.uploaded", path=path)
        return {"name": original_name, "url": url, "path": path}

    def delete(self, path: str) -> None:
        """Remove a stored file; a missing file is not an error."""
        try:
            self._storage.delete(path)
        except (OSError, SuspiciousOperation) as exc:
            logger.error("promotion.delete_failed", path=path, error=str(exc))
            raise UploadFailed(f"Could not delete {path}.") from exc
        logger.info("promotion.deleted", path=path)
