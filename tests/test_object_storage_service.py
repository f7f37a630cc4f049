from __future__ import annotations

import pytest

from duesdesk.services import object_storage
from duesdesk.services.object_storage import ObjectStorageError, S3StorageService


def test_bucket_creation_idempotent(fake_s3, s3_storage):
    fake_s3.bucket_exists = False

    s3_storage.ensure_bucket()
    assert fake_s3.created_bucket is True

    fake_s3.created_bucket = False
    fake_s3.bucket_exists = True
    s3_storage.ensure_bucket()
    assert fake_s3.created_bucket is False


def test_ensure_bucket_surfaces_unexpected_errors(fake_s3, s3_storage):
    fake_s3.fail_with = "AccessDenied"
    with pytest.raises(ObjectStorageError):
        s3_storage.ensure_bucket()


def test_upload_and_delete(fake_s3, s3_storage):
    s3_storage.upload("receipts/1.pdf", b"%PDF", "application/pdf")
    assert fake_s3.objects["receipts/1.pdf"] == b"%PDF"
    assert fake_s3.content_types["receipts/1.pdf"] == "application/pdf"

    s3_storage.delete("receipts/1.pdf")
    assert "receipts/1.pdf" not in fake_s3.objects


def test_upload_failure_raises_storage_error(fake_s3, s3_storage):
    fake_s3.fail_with = "ServiceUnavailable"
    with pytest.raises(ObjectStorageError):
        s3_storage.upload("receipts/1.pdf", b"%PDF", "application/pdf")


def test_delete_ignores_missing_objects(fake_s3, s3_storage):
    fake_s3.fail_with = "NoSuchKey"
    s3_storage.delete("receipts/missing.pdf")


def test_public_url_prefers_public_base_url(fake_s3):
    service = S3StorageService(
        "receipts",
        "http://minio:9000",
        "a",
        "b",
        "us-east-1",
        public_base_url="https://cdn.example.com/",
        client=fake_s3,
    )
    assert service.public_url("receipts/1.pdf") == "https://cdn.example.com/receipts/1.pdf"


def test_public_url_falls_back_to_endpoint(s3_storage):
    assert s3_storage.public_url("receipts/1.pdf") == "http://minio:9000/receipts/receipts/1.pdf"


def test_get_s3_storage_requires_credentials(monkeypatch):
    monkeypatch.setattr(
        object_storage,
        "settings",
        object_storage.settings.model_copy(update={"s3_access_key": None}),
    )
    object_storage.get_s3_storage.cache_clear()
    try:
        with pytest.raises(ObjectStorageError):
            object_storage.get_s3_storage()
    finally:
        object_storage.get_s3_storage.cache_clear()
