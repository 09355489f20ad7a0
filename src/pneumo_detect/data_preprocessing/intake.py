"""
Upload intake validation: only JPEG and PNG images up to a byte limit.
"""

from enum import Enum
from typing import Optional

from loguru import logger

from ..exceptions import UnsupportedMediaError, UploadTooLargeError


DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024

JPEG_SIGNATURE = b'\xff\xd8\xff'
PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'


class ImageFormat(str, Enum):
    JPEG = "image/jpeg"
    PNG = "image/png"


def detect_format(data: bytes) -> Optional[ImageFormat]:
    """Identify the container format from its leading signature bytes."""
    if data.startswith(JPEG_SIGNATURE):
        return ImageFormat.JPEG
    if data.startswith(PNG_SIGNATURE):
        return ImageFormat.PNG
    return None


def validate_upload(
    data: bytes,
    content_type: Optional[str] = None,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
) -> ImageFormat:
    """
    Reject uploads before they reach the pipeline.

    Args:
        data: Raw upload bytes
        content_type: Declared MIME type, checked when given
        max_bytes: Maximum accepted size in bytes

    Returns:
        The detected image format

    Raises:
        UploadTooLargeError: If the upload exceeds max_bytes
        UnsupportedMediaError: If the upload is empty, not JPEG/PNG, or the
            declared content type disagrees with the accepted types
    """
    if len(data) > max_bytes:
        logger.warning(f"Upload rejected: {len(data)} bytes exceeds limit of {max_bytes}")
        raise UploadTooLargeError(
            f"File size must be less than {max_bytes // (1024 * 1024)}MB"
        )

    if content_type is not None and content_type not in {f.value for f in ImageFormat}:
        logger.warning(f"Upload rejected: content type {content_type!r}")
        raise UnsupportedMediaError("Please upload a JPEG or PNG image file")

    image_format = detect_format(data)
    if image_format is None:
        logger.warning("Upload rejected: unrecognised image signature")
        raise UnsupportedMediaError("Please upload a JPEG or PNG image file")

    return image_format
