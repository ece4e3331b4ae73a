"""Queue consumer base class.

A worker repeatedly claims one job of its declared types, hands it to
``process()`` and records the outcome on the job row. Delivery is
at-least-once, so ``process()`` implementations must tolerate running
the same job again.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediasync.core.logging import get_logger
from mediasync.db.models import Job, JobStatus, JobType
from mediasync.db.session import async_session_maker
from mediasync.services.job_queue import JobQueueService

logger = get_logger(__name__)


class RetryableError(Exception):
    """The job failed but another delivery may succeed."""


class NonRetryableError(Exception):
    """The job failed for good; remaining attempts are not used."""


@dataclass
class WorkerCounters:
    processed: int = 0
    failed: int = 0
    started_at: datetime | None = None
    current_job_id: str | None = None

    def uptime_seconds(self) -> int:
        if self.started_at is None:
            return 0
        return int((datetime.now(timezone.utc) - self.started_at).total_seconds())


class BaseWorker(ABC):
    """Polls the job queue and processes one job at a time.

    Subclasses set ``job_types`` and implement ``process()``. Raising
    ``NonRetryableError`` fails the job immediately; any other exception
    re-queues it with backoff until its attempts run out.
    """

    job_types: list[JobType] = []

    def __init__(
        self,
        *,
        poll_interval: float = 1.0,
        worker_id: str | None = None,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
    ):
        """Initialize the worker.

        Args:
            poll_interval: Idle seconds between polls of an empty queue.
            worker_id: Name used in logs and stats.
            session_maker: Factory for queue sessions.
        """
        self.poll_interval = poll_interval
        self.worker_id = worker_id or type(self).__name__
        self.session_maker = session_maker or async_session_maker

        self._counters = WorkerCounters()
        self._running = False
        self._stop = asyncio.Event()

    @abstractmethod
    async def process(
        self, job: Job, payload: dict[str, Any] | None
    ) -> dict[str, Any] | None:
        """Handle one claimed job.

        Args:
            job: The claimed job, already RUNNING.
            payload: Decoded ``job.payload_json``.

        Returns:
            Result stored on the job, or None.
        """

    async def run(self) -> None:
        """Consume jobs until ``request_shutdown()`` is called."""
        self._running = True
        self._counters.started_at = datetime.now(timezone.utc)
        logger.info(
            "worker_started",
            worker_id=self.worker_id,
            job_types=[jt.value for jt in self.job_types],
            poll_interval=self.poll_interval,
        )

        try:
            while self._running and not self._stop.is_set():
                try:
                    claimed = await self.run_once()
                except Exception as e:
                    # Queue access failed, e.g. database locked
                    logger.error(
                        "worker_poll_error",
                        worker_id=self.worker_id,
                        error=str(e),
                        exc_info=True,
                    )
                    await self._idle(self.poll_interval * 2)
                    continue

                if not claimed:
                    await self._idle(self.poll_interval)
        finally:
            self._running = False
            logger.info(
                "worker_stopped",
                worker_id=self.worker_id,
                jobs_processed=self._counters.processed,
                jobs_failed=self._counters.failed,
                uptime_seconds=self._counters.uptime_seconds(),
            )

    async def run_once(self) -> bool:
        """Claim and process at most one job.

        Returns:
            False when nothing was waiting in the queue.
        """
        async with self.session_maker() as db:
            queue = JobQueueService(db)
            job = await queue.dequeue(self.job_types or None)
            if job is None:
                return False

            # process() opens its own sessions; release the claim transaction first
            await db.commit()

            self._counters.current_job_id = job.id
            try:
                await self._execute(queue, job)
            finally:
                self._counters.current_job_id = None
                await db.commit()

        return True

    async def _execute(self, queue: JobQueueService, job: Job) -> None:
        logger.info(
            "job_processing_start",
            worker_id=self.worker_id,
            job_id=job.id,
            job_type=job.type.value,
            attempt=job.attempts,
        )

        try:
            result = await self.process(job, queue.get_payload(job))
        except Exception as e:
            await self._record_failure(queue, job, e)
            return

        await queue.complete(job.id, success=True, result=result)
        self._counters.processed += 1

    async def _record_failure(self, queue: JobQueueService, job: Job, error: Exception) -> None:
        retryable = not isinstance(error, NonRetryableError)
        logger.error(
            "job_processing_error",
            worker_id=self.worker_id,
            job_id=job.id,
            job_type=job.type.value,
            error=str(error),
            retryable=retryable,
            exc_info=retryable,
        )
        self._counters.failed += 1

        updated = await queue.complete(
            job.id, success=False, error=str(error), retryable=retryable
        )
        if updated is not None and updated.status == JobStatus.QUEUED:
            logger.info(
                "job_retry_scheduled",
                job_id=job.id,
                attempt=updated.attempts,
                next_retry_at=updated.next_retry_at.isoformat()
                if updated.next_retry_at
                else None,
            )

    async def _idle(self, seconds: float) -> None:
        """Sleep, returning early on shutdown."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def request_shutdown(self) -> None:
        """Stop after the job in hand, if any, has finished."""
        logger.info(
            "worker_shutdown_requested",
            worker_id=self.worker_id,
            current_job_id=self._counters.current_job_id,
        )
        self._running = False
        self._stop.set()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_processing(self) -> bool:
        return self._counters.current_job_id is not None

    @property
    def stats(self) -> dict[str, Any]:
        """Counters for monitoring."""
        return {
            "worker_id": self.worker_id,
            "job_types": [jt.value for jt in self.job_types],
            "is_running": self._running,
            "is_processing": self.is_processing,
            "current_job_id": self._counters.current_job_id,
            "jobs_processed": self._counters.processed,
            "jobs_failed": self._counters.failed,
            "uptime_seconds": self._counters.uptime_seconds(),
        }
