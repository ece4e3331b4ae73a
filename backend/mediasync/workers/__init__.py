"""Background workers for MediaSync."""

from mediasync.workers.base import BaseWorker, NonRetryableError, RetryableError
from mediasync.workers.gdrive_sync import GdriveSyncWorker
from mediasync.workers.manager import WorkerManager, build_worker_manager

__all__ = [
    # Base classes
    "BaseWorker",
    "RetryableError",
    "NonRetryableError",
    # Workers
    "GdriveSyncWorker",
    # Manager
    "WorkerManager",
    "build_worker_manager",
]
