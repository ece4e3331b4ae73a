"""Database models for MediaSync."""

from mediasync.db.models.api_integration import ApiIntegration
from mediasync.db.models.enums import JobStatus, JobType, MediaCategory, MediaSource
from mediasync.db.models.job import Job
from mediasync.db.models.media_item import MediaItem

__all__ = [
    # Models
    "ApiIntegration",
    "Job",
    "MediaItem",
    # Enums
    "JobStatus",
    "JobType",
    "MediaCategory",
    "MediaSource",
]
