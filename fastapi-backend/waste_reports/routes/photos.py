"""Photo upload route for waste and cleaned-area pictures."""

from __future__ import annotations

from enum import Enum
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi import status as http_status
from pydantic import BaseModel

from .. import auth
from ..config import get_settings
from ..dependencies import get_photo_store
from ..errors import ExternalServiceError, Forbidden
from ..models import Principal, Role
from ..photo_utils import detect_mime_type, validate_image
from ..storage import build_photo_path
from ..upload_metrics import (
    UPLOAD_ATTEMPTS,
    UPLOAD_FAILURES,
    UPLOAD_SUCCESSES,
)

logger = logging.getLogger("app.photos")

router = APIRouter(prefix="/api/v1")


class PhotoKind(str, Enum):
    waste = "waste"
    cleaned = "cleaned"


# Citizens photograph the waste; staff photograph the cleaned area.
UPLOAD_RIGHTS = {
    PhotoKind.waste: {Role.user},
    PhotoKind.cleaned: {Role.worker, Role.management},
}


class PhotoResponse(BaseModel):
    url: str
    path: str
    content_type: str
    size: int


@router.post("/photos", response_model=PhotoResponse, status_code=http_status.HTTP_201_CREATED)
async def upload_photo(
    file: UploadFile = File(...),
    kind: PhotoKind = Form(PhotoKind.waste),
    principal: Principal = Depends(auth.get_current_principal),
    blob_store=Depends(get_photo_store),
):
    """Store an image and return the URL to put on the report."""
    if Role(principal.role) not in UPLOAD_RIGHTS[kind]:
        raise Forbidden(f"Role '{Role(principal.role).value}' cannot upload {kind.value} photos")

    UPLOAD_ATTEMPTS.labels(kind=kind.value).inc()
    settings = get_settings()
    file_data = await file.read()

    is_valid, error_msg = validate_image(file_data, file.content_type, settings.max_upload_bytes)
    if not is_valid:
        UPLOAD_FAILURES.labels(kind=kind.value, reason="invalid").inc()
        status_code = 413 if len(file_data) > settings.max_upload_bytes else 400
        raise HTTPException(status_code=status_code, detail=error_msg)

    content_type = detect_mime_type(file_data, fallback=file.content_type)
    path = build_photo_path(kind.value, content_type)
    try:
        url = await blob_store.upload(path, file_data, content_type)
    except ExternalServiceError:
        UPLOAD_FAILURES.labels(kind=kind.value, reason="storage").inc()
        raise

    UPLOAD_SUCCESSES.labels(kind=kind.value).inc()
    logger.info("Principal %s uploaded %s photo %s (%d bytes)", principal.id, kind.value, path, len(file_data))
    return PhotoResponse(url=url, path=path, content_type=content_type, size=len(file_data))
