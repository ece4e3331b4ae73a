"""Google Drive sync worker.

Processes GDRIVE_SYNC jobs by:
1. Validating the {channelId, integrationId, folderId} payload
2. Exchanging the integration's refresh token for an access token
3. Listing the Drive folder (non-recursive)
4. Importing new images and videos into the media catalog
5. Updating the integration's last-sync timestamp

Configuration and authorization problems fail the job outright. Provider
outages are retried by the queue with backoff; the whole job is re-run,
which is safe because the import is idempotent.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediasync.core.exceptions import FATAL_ERRORS, MediaSyncError, TransientProviderError
from mediasync.core.logging import get_logger
from mediasync.db.models import Job, JobType
from mediasync.services.gdrive_sync import GdriveSyncRequest, GdriveSyncService
from mediasync.workers.base import BaseWorker, NonRetryableError, RetryableError

logger = get_logger(__name__)


class GdriveSyncWorker(BaseWorker):
    """Worker for importing Google Drive folders into the media catalog."""

    job_types = [JobType.GDRIVE_SYNC]

    def __init__(
        self,
        *,
        sync_service: GdriveSyncService,
        poll_interval: float = 1.0,
        worker_id: str | None = None,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
    ):
        """Initialize the sync worker.

        Args:
            sync_service: Pipeline that performs one folder sync.
            poll_interval: Seconds between polling for jobs.
            worker_id: Optional identifier for this worker instance.
            session_maker: Session factory for queue access.
        """
        super().__init__(
            poll_interval=poll_interval,
            worker_id=worker_id,
            session_maker=session_maker,
        )
        self.sync_service = sync_service

    async def process(
        self, job: Job, payload: dict[str, Any] | None
    ) -> dict[str, Any] | None:
        """Process a sync job.

        Args:
            job: The Job instance to process.
            payload: Parsed payload dict with channelId, integrationId
                and folderId.

        Returns:
            Result dict with imported, skipped and failed counts.

        Raises:
            NonRetryableError: Invalid payload, configuration or auth error.
            RetryableError: Transient provider error.
        """
        if not payload:
            raise NonRetryableError("Job missing payload")

        try:
            request = GdriveSyncRequest.model_validate(payload)
        except ValidationError as e:
            raise NonRetryableError(f"Invalid sync payload: {e}") from e

        logger.info(
            "gdrive_sync_started",
            job_id=job.id,
            channel_id=request.channel_id,
            folder_id=request.folder_id,
        )

        try:
            result = await self.sync_service.run(request)
        except FATAL_ERRORS as e:
            logger.error(
                "gdrive_sync_failed",
                job_id=job.id,
                channel_id=request.channel_id,
                folder_id=request.folder_id,
                error_kind=e.code,
                error=e.message,
            )
            raise NonRetryableError(e.message) from e
        except TransientProviderError as e:
            logger.warning(
                "gdrive_sync_failed",
                job_id=job.id,
                channel_id=request.channel_id,
                folder_id=request.folder_id,
                error_kind=e.code,
                status=e.status,
                error=e.message,
            )
            raise RetryableError(e.message) from e
        except MediaSyncError as e:
            logger.error(
                "gdrive_sync_failed",
                job_id=job.id,
                channel_id=request.channel_id,
                error_kind=e.code,
                error=e.message,
            )
            raise

        logger.info(
            "gdrive_sync_complete",
            job_id=job.id,
            channel_id=request.channel_id,
            folder_id=request.folder_id,
            imported=result.imported,
            skipped=result.skipped,
            failed=result.failed,
        )
        return result.model_dump()
