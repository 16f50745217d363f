"""
Photo validation for waste and cleaned-area uploads.

Uses Pillow (PIL) to make sure the bytes really are an image.
"""

from PIL import Image, UnidentifiedImageError
import io
from typing import Tuple, Optional
import logging

logger = logging.getLogger("app.photo_utils")

ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
PIL_FORMATS = {"JPEG": "image/jpeg", "PNG": "image/png", "GIF": "image/gif", "WEBP": "image/webp"}


def validate_image(file_data: bytes, content_type: Optional[str], max_bytes: int) -> Tuple[bool, Optional[str]]:
    """
    Validate an uploaded image.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not file_data:
        return False, "File is empty"

    if len(file_data) > max_bytes:
        return False, f"File size must be less than {max_bytes / (1024 * 1024):.0f}MB"

    if not content_type or not content_type.lower().startswith("image/"):
        return False, "Only image files are allowed"

    if content_type.lower() not in ALLOWED_MIME_TYPES:
        return False, f"Image type not allowed. Allowed: {', '.join(sorted(ALLOWED_MIME_TYPES))}"

    try:
        img = Image.open(io.BytesIO(file_data))
        img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.info(f"Image validation failed: {e}")
        return False, "Invalid image file"

    return True, None


def detect_mime_type(file_data: bytes, fallback: str = "image/jpeg") -> str:
    """MIME type from the decoded image format rather than the client's claim."""
    try:
        img = Image.open(io.BytesIO(file_data))
        return PIL_FORMATS.get(img.format or "", fallback)
    except (UnidentifiedImageError, OSError):
        return fallback
