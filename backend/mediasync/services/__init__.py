"""Business logic services for MediaSync."""

from mediasync.services.credentials import CredentialResolver
from mediasync.services.gdrive_sync import GdriveSyncRequest, GdriveSyncService
from mediasync.services.google_drive import DriveFile, GoogleDriveClient
from mediasync.services.job_queue import JobQueueService
from mediasync.services.media_classifier import classify
from mediasync.services.media_import import ImportResult, MediaImportService

__all__ = [
    "CredentialResolver",
    "DriveFile",
    "GdriveSyncRequest",
    "GdriveSyncService",
    "GoogleDriveClient",
    "ImportResult",
    "JobQueueService",
    "MediaImportService",
    "classify",
]
