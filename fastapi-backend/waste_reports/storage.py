"""
Blob storage for waste and cleaned-area photos.

`upload(path, data, content_type)` returns the URL the image is served from.
S3 is used when STORAGE_PROVIDER=s3, otherwise files land in the local
storage directory which `main.py` mounts under `/storage`.
"""

from pathlib import Path
from typing import Optional
import logging
import uuid

from fastapi.concurrency import run_in_threadpool

from .config import get_settings
from .errors import ExternalServiceError
from .storage_s3 import S3Storage, StorageError, guess_extension

logger = logging.getLogger("app.storage")

PHOTO_PREFIXES = {
    "waste": "waste-reports",
    "cleaned": "cleaned-areas",
}


def build_photo_path(kind: str, content_type: str) -> str:
    """Storage key for a new photo, e.g. `waste-reports/<uuid>.jpg`."""
    prefix = PHOTO_PREFIXES[kind]
    return f"{prefix}/{uuid.uuid4().hex}.{guess_extension(content_type)}"


class LocalBlobStore:
    def __init__(self, root: Path, public_url: str):
        self.root = root
        self.public_url = public_url.rstrip("/")

    def _write(self, path: str, data: bytes) -> Path:
        target = self.root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return target

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        try:
            target = await run_in_threadpool(self._write, path, data)
        except OSError as exc:
            logger.error("Failed to store %s locally: %s", path, exc)
            raise ExternalServiceError("Could not store the image") from exc
        logger.info("Stored photo locally: %s", target)
        return f"{self.public_url}/{path}"


class S3BlobStore:
    def __init__(self, s3: S3Storage):
        self._s3 = s3

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        try:
            # boto3 is blocking
            await run_in_threadpool(self._s3.put_object, path, data, content_type)
        except StorageError as exc:
            logger.error("Failed to upload %s to S3: %s", path, exc)
            raise ExternalServiceError("Could not store the image") from exc
        return self._s3.public_url(path)


_blob_store = None


def get_blob_store():
    """Process-wide blob store chosen from settings."""
    global _blob_store
    if _blob_store is None:
        settings = get_settings()
        if settings.storage_provider == "s3":
            s3 = S3Storage()
            s3.ensure_bucket()
            _blob_store = S3BlobStore(s3)
        else:
            settings.local_storage_dir.mkdir(parents=True, exist_ok=True)
            _blob_store = LocalBlobStore(settings.local_storage_dir, settings.public_storage_url)
        logger.info("Storage initialized (provider=%s)", settings.storage_provider)
    return _blob_store


def reset_blob_store(store: Optional[object] = None) -> None:
    global _blob_store
    _blob_store = store


__all__ = ["LocalBlobStore", "S3BlobStore", "build_photo_path", "get_blob_store", "reset_blob_store"]
