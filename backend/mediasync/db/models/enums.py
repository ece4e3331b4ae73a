"""Enum types for database models."""

from __future__ import annotations

import enum


class JobType(str, enum.Enum):
    """Types of background jobs."""

    GDRIVE_SYNC = "GDRIVE_SYNC"


class JobStatus(str, enum.Enum):
    """Status of a background job."""

    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELED = "CANCELED"


class MediaCategory(str, enum.Enum):
    """Catalog category of a media file."""

    IMAGE = "image"
    VIDEO = "video"
    UNSUPPORTED = "unsupported"


class MediaSource(str, enum.Enum):
    """How a catalog entry came to exist."""

    UPLOAD = "upload"
    SYNC = "sync"
