"""MIME type classification for catalog imports."""

from __future__ import annotations

from mediasync.db.models import MediaCategory

# Only these types are rendered by the media library; no prefix matching
SUPPORTED_IMAGE_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/avif",
})

SUPPORTED_VIDEO_TYPES = frozenset({
    "video/mp4",
    "video/quicktime",
    "video/x-msvideo",
    "video/webm",
})


def classify(mime_type: str | None) -> MediaCategory:
    """Map a MIME type to its catalog category.

    Args:
        mime_type: MIME type as reported by the storage provider.

    Returns:
        IMAGE or VIDEO for allow-listed types, UNSUPPORTED otherwise.
    """
    if mime_type in SUPPORTED_IMAGE_TYPES:
        return MediaCategory.IMAGE
    if mime_type in SUPPORTED_VIDEO_TYPES:
        return MediaCategory.VIDEO
    return MediaCategory.UNSUPPORTED
