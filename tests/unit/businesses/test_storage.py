"""Unit tests for promotional file storage."""

from __future__ import annotations

from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from django.core.files.storage import InMemoryStorage
from django.core.files.uploadedfile import SimpleUploadedFile

from modules.businesses.exceptions import UploadFailed, UploadTooLarge
from modules.businesses.storage import PromotionStorage, resolve_content_type, size_limit_for

pytestmark = pytest.mark.unit


def _upload(name: str, size: int, content_type: str) -> SimpleUploadedFile:
    return SimpleUploadedFile(name, b"x" * size, content_type=content_type)


@pytest.fixture()
def limits(settings):
    settings.PROMOTION_IMAGE_MAX_BYTES = 200 * 1024
    settings.PROMOTION_PDF_MAX_BYTES = 600 * 1024
    return settings


class TestContentType:
    def test_declared_type_wins(self):
        upload = _upload("promo.bin", 1, "image/PNG; charset=binary")
        assert resolve_content_type(upload) == "image/png"

    def test_guessed_from_name(self):
        upload = MagicMock(content_type=None)
        upload.name = "menu.pdf"
        assert resolve_content_type(upload) == "application/pdf"

    def test_unsupported_type(self, limits):
        with pytest.raises(UploadFailed):
            size_limit_for("text/plain")


class TestPromotionStorage:
    def test_stores_image_under_business_prefix(self, limits):
        business_id = uuid4()
        storage = PromotionStorage(InMemoryStorage())

        descriptor = storage.upload(business_id, _upload("Promo.JPG", 1024, "image/jpeg"))

        assert descriptor["name"] == "Promo.JPG"
        assert descriptor["path"].startswith(f"promotions/{business_id}/")
        assert descriptor["path"].endswith(".jpg")
        assert descriptor["url"]

    def test_image_at_limit_is_rejected(self, limits):
        storage = PromotionStorage(InMemoryStorage())
        with pytest.raises(UploadTooLarge):
            storage.upload(uuid4(), _upload("big.png", 200 * 1024, "image/png"))

    def test_pdf_has_its_own_limit(self, limits):
        storage = PromotionStorage(InMemoryStorage())
        descriptor = storage.upload(uuid4(), _upload("menu.pdf", 300 * 1024, "application/pdf"))
        assert descriptor["path"].endswith(".pdf")

        with pytest.raises(UploadTooLarge):
            storage.upload(uuid4(), _upload("menu.pdf", 600 * 1024, "application/pdf"))

    def test_backend_error_becomes_upload_failed(self, limits):
        backend = MagicMock()
        backend.save.side_effect = OSError("disk full")
        storage = PromotionStorage(backend)

        with pytest.raises(UploadFailed):
            storage.upload(uuid4(), _upload("promo.png", 10, "image/png"))

    def test_delete_removes_file(self, limits):
        backend = InMemoryStorage()
        storage = PromotionStorage(backend)
        descriptor = storage.upload(uuid4(), _upload("promo.png", 10, "image/png"))

        storage.delete(descriptor["path"])

        assert not backend.exists(descriptor["path"])
