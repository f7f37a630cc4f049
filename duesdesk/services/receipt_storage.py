"""Receipt uploads for payment submissions.

Receipts go to S3-compatible object storage first. When object storage is
unavailable the file is written to the local receipts directory instead so
the submission still succeeds.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from fastapi import HTTPException, UploadFile

from duesdesk.config import settings
from duesdesk.metrics import observe_receipt_upload
from duesdesk.services.object_storage import (
    ObjectStorageError,
    StorageService,
    get_s3_storage,
)

logger = logging.getLogger(__name__)

LOCAL_PUBLIC_ID_PREFIX = "local:"
S3_KEY_PREFIX = "receipts/"

CONTENT_TYPE_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "application/pdf": ".pdf",
}

INVALID_RECEIPT_MESSAGE = "Please upload a valid receipt file (JPEG, JPG, PNG, or PDF)"


@dataclass(frozen=True)
class StoredReceipt:
    url: str
    public_id: str
    backend: str


def resolve_safe_path(base_dir: Path, relative_path: str) -> Path:
    """Resolve relative_path inside base_dir, refusing anything that escapes it."""
    base = base_dir.resolve()
    full_path = (base / relative_path).resolve()
    if base != full_path and base not in full_path.parents:
        raise ValueError("Invalid file path: outside upload directory")
    return full_path


def validate_receipt(content_type: str | None, data: bytes) -> None:
    if not content_type or content_type.lower() not in settings.allowed_receipt_types:
        raise HTTPException(status_code=400, detail=INVALID_RECEIPT_MESSAGE)
    if not data:
        raise HTTPException(status_code=400, detail="Receipt file is empty")
    if len(data) > settings.receipt_max_size_bytes:
        raise HTTPException(
            status_code=400,
            detail=(
                "Receipt file too large. Maximum size: "
                f"{settings.receipt_max_size_bytes // 1024 // 1024}MB"
            ),
        )


def read_receipt(file: UploadFile | None) -> tuple[bytes, str | None]:
    if file is None:
        raise HTTPException(status_code=400, detail="Receipt file is required")
    # One byte past the limit is enough for validate_receipt to reject it.
    data = file.file.read(settings.receipt_max_size_bytes + 1)
    return data, file.content_type


def _store_local(data: bytes, extension: str) -> StoredReceipt:
    upload_dir = Path(settings.receipt_upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    filename = f"{uuid.uuid4().hex}{extension}"
    file_path = resolve_safe_path(upload_dir, filename)
    with open(file_path, "wb") as f:
        f.write(data)
    return StoredReceipt(
        url=f"{settings.receipt_url_prefix.rstrip('/')}/{filename}",
        public_id=f"{LOCAL_PUBLIC_ID_PREFIX}{filename}",
        backend="local",
    )


def store_receipt(
    data: bytes,
    content_type: str,
    storage: StorageService | None = None,
) -> StoredReceipt:
    """Persist a validated receipt and return where it ended up.

    Raises:
        HTTPException: 500 if neither object storage nor the local
            directory accepted the file
    """
    extension = CONTENT_TYPE_EXTENSIONS.get(content_type.lower(), "")
    key = f"{S3_KEY_PREFIX}{uuid.uuid4().hex}{extension}"
    try:
        backend = storage or get_s3_storage()
        backend.upload(key, data, content_type)
        stored = StoredReceipt(url=backend.public_url(key), public_id=key, backend="s3")
    except ObjectStorageError as exc:
        logger.warning("Object storage upload failed, using local receipts dir: %s", exc)
        try:
            stored = _store_local(data, extension)
        except (OSError, ValueError) as local_exc:
            logger.error("Local receipt write failed: %s", local_exc)
            raise HTTPException(
                status_code=500, detail="Failed to upload receipt"
            ) from local_exc
    observe_receipt_upload(stored.backend)
    return stored


def delete_receipt(public_id: str | None, storage: StorageService | None = None) -> None:
    """Remove a stored receipt. Missing files are ignored."""
    if not public_id:
        return
    if public_id.startswith(LOCAL_PUBLIC_ID_PREFIX):
        filename = public_id[len(LOCAL_PUBLIC_ID_PREFIX):]
        file_path = resolve_safe_path(Path(settings.receipt_upload_dir), filename)
        if file_path.exists():
            file_path.unlink()
        return
    (storage or get_s3_storage()).delete(public_id)
