"""Database-backed job queue.

Jobs move QUEUED -> RUNNING -> SUCCESS | FAILED | CANCELED. A failed
attempt goes back to QUEUED with ``next_retry_at`` set while attempts
remain. Delivery is at-least-once: a RUNNING job whose worker disappears
is put back in the queue by ``recover_orphaned_jobs`` at startup or by
``requeue_stale_jobs`` during maintenance.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediasync.core.config import settings
from mediasync.core.logging import get_logger
from mediasync.db.models import Job, JobStatus, JobType

logger = get_logger(__name__)

RETRY_BASE_DELAY = 30
RETRY_MAX_DELAY = 3600

ACTIVE_STATUSES = (JobStatus.QUEUED, JobStatus.RUNNING)


def calculate_retry_delay(attempts: int) -> int:
    """Seconds to wait before the next delivery: min(30 * 2**attempts, 3600)."""
    return min(RETRY_BASE_DELAY * (2 ** attempts), RETRY_MAX_DELAY)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobQueueService:
    """Queue operations over one session.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # -------------------------------------------------------------------------
    # Producers
    # -------------------------------------------------------------------------

    async def enqueue(
        self,
        job_type: JobType,
        *,
        channel_id: str | None = None,
        payload: dict[str, Any] | None = None,
        priority: int = 0,
        max_attempts: int | None = None,
    ) -> Job:
        """Add a QUEUED job.

        Args:
            job_type: Kind of work.
            channel_id: Channel the work is for, if any.
            payload: JSON-serializable job input.
            priority: Higher runs first.
            max_attempts: Delivery cap. Defaults to ``settings.job_max_attempts``.
        """
        job = Job(
            type=job_type,
            status=JobStatus.QUEUED,
            priority=priority,
            channel_id=channel_id,
            payload_json=json.dumps(payload) if payload else None,
            attempts=0,
            max_attempts=max_attempts or settings.job_max_attempts,
        )
        self.db.add(job)
        await self.db.flush()

        logger.info(
            "job_enqueued",
            job_id=job.id,
            job_type=job_type.value,
            channel_id=channel_id,
            priority=priority,
        )
        return job

    async def enqueue_gdrive_sync(
        self,
        channel_id: str,
        integration_id: str,
        folder_id: str,
        *,
        priority: int = 0,
    ) -> Job:
        """Queue a Google Drive folder sync for a channel."""
        return await self.enqueue(
            JobType.GDRIVE_SYNC,
            channel_id=channel_id,
            payload={
                "channelId": channel_id,
                "integrationId": integration_id,
                "folderId": folder_id,
            },
            priority=priority,
        )

    # -------------------------------------------------------------------------
    # Consumers
    # -------------------------------------------------------------------------

    async def dequeue(self, job_types: list[JobType] | None = None) -> Job | None:
        """Claim the most urgent eligible job, or return None.

        A job is eligible when QUEUED and past any ``next_retry_at``.
        Ordering is priority first, then age. Rows are locked with
        SKIP LOCKED on backends that support it so two workers never
        claim the same job.
        """
        now = _utcnow()
        eligible = [
            Job.status == JobStatus.QUEUED,
            or_(Job.next_retry_at.is_(None), Job.next_retry_at <= now),
        ]
        if job_types:
            eligible.append(Job.type.in_(job_types))

        job = await self.db.scalar(
            select(Job)
            .where(*eligible)
            .order_by(Job.priority.desc(), Job.created_at.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
        )
        if job is None:
            return None

        job.status = JobStatus.RUNNING
        job.attempts += 1
        job.started_at = now
        job.next_retry_at = None
        await self.db.flush()

        logger.info("job_claimed", job_id=job.id, job_type=job.type.value, attempt=job.attempts)
        return job

    async def complete(
        self,
        job_id: str,
        *,
        success: bool,
        error: str | None = None,
        result: dict[str, Any] | None = None,
        retryable: bool = True,
    ) -> Job | None:
        """Record the outcome of a claimed job.

        A failure is re-queued with backoff when ``retryable`` is set and
        the job has attempts left; otherwise the job becomes FAILED.

        Returns:
            The updated job, or None if it no longer exists.
        """
        job = await self.get_job(job_id)
        if job is None:
            logger.warning("job_not_found", job_id=job_id)
            return None

        now = _utcnow()
        if result:
            job.result_json = json.dumps(result)

        if success:
            job.status = JobStatus.SUCCESS
            job.finished_at = now
            job.last_error = None
            logger.info(
                "job_completed_success",
                job_id=job_id,
                job_type=job.type.value,
                duration_ms=self._duration_ms(job),
            )
        elif retryable and job.attempts < job.max_attempts:
            delay = calculate_retry_delay(job.attempts)
            job.status = JobStatus.QUEUED
            job.last_error = error
            job.started_at = None
            job.finished_at = None
            job.next_retry_at = now + timedelta(seconds=delay)
            logger.info(
                "job_failed_will_retry",
                job_id=job_id,
                job_type=job.type.value,
                attempt=job.attempts,
                max_attempts=job.max_attempts,
                delay_seconds=delay,
                error=error,
            )
        else:
            job.status = JobStatus.FAILED
            job.finished_at = now
            job.last_error = error
            logger.error(
                "job_failed",
                job_id=job_id,
                job_type=job.type.value,
                attempts=job.attempts,
                retryable=retryable,
                error=error,
            )

        await self.db.flush()
        return job

    async def cancel(self, job_id: str) -> Job | None:
        """Cancel a QUEUED or RUNNING job; finished jobs are left alone."""
        job = await self.db.scalar(
            select(Job).where(Job.id == job_id, Job.status.in_(ACTIVE_STATUSES))
        )
        if job is None:
            logger.warning("job_cancel_failed", job_id=job_id, reason="not_found_or_finished")
            return None

        job.status = JobStatus.CANCELED
        job.finished_at = _utcnow()
        await self.db.flush()

        logger.info("job_canceled", job_id=job_id, job_type=job.type.value)
        return job

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    async def get_job(self, job_id: str) -> Job | None:
        return await self.db.get(Job, job_id)

    async def get_queue_stats(self) -> dict[str, Any]:
        """Job counts.

        Returns:
            ``by_status`` over all jobs, ``by_type`` over QUEUED and
            RUNNING jobs only, and ``total``.
        """
        by_status = {
            status.value: count
            for status, count in await self.db.execute(
                select(Job.status, func.count(Job.id)).group_by(Job.status)
            )
        }
        by_type = {
            job_type.value: count
            for job_type, count in await self.db.execute(
                select(Job.type, func.count(Job.id))
                .where(Job.status.in_(ACTIVE_STATUSES))
                .group_by(Job.type)
            )
        }
        return {"by_status": by_status, "by_type": by_type, "total": sum(by_status.values())}

    def get_payload(self, job: Job) -> dict[str, Any] | None:
        return json.loads(job.payload_json) if job.payload_json else None

    def get_result(self, job: Job) -> dict[str, Any] | None:
        return json.loads(job.result_json) if job.result_json else None

    def _duration_ms(self, job: Job) -> int | None:
        if not (job.started_at and job.finished_at):
            return None
        return int((_as_utc(job.finished_at) - _as_utc(job.started_at)).total_seconds() * 1000)

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    async def recover_orphaned_jobs(self) -> int:
        """Put every RUNNING job back in the queue.

        Only safe at process startup, before any worker has claimed work.
        """
        result = await self.db.execute(
            update(Job)
            .where(Job.status == JobStatus.RUNNING)
            .values(
                status=JobStatus.QUEUED,
                started_at=None,
                last_error="Job interrupted by worker restart - auto-recovered",
            )
            .returning(Job.id)
        )
        recovered = len(result.scalars().all())
        await self.db.flush()

        if recovered:
            logger.warning("orphaned_jobs_recovered_on_startup", count=recovered)
        return recovered

    async def requeue_stale_jobs(self, stale_minutes: int = 30) -> int:
        """Put RUNNING jobs claimed more than ``stale_minutes`` ago back in the queue."""
        cutoff = _utcnow() - timedelta(minutes=stale_minutes)
        result = await self.db.execute(
            update(Job)
            .where(Job.status == JobStatus.RUNNING, Job.started_at < cutoff)
            .values(status=JobStatus.QUEUED, started_at=None)
        )
        await self.db.flush()

        if result.rowcount:
            logger.warning("stale_jobs_requeued", count=result.rowcount, stale_minutes=stale_minutes)
        return result.rowcount

    async def purge_finished_jobs(
        self,
        *,
        completed_days: int | None = None,
        failed_days: int | None = None,
    ) -> int:
        """Delete finished jobs past retention.

        SUCCESS jobs are kept ``completed_days``; FAILED and CANCELED jobs
        ``failed_days``. Both default to settings.

        Returns:
            Number of jobs deleted.
        """
        now = _utcnow()
        completed_cutoff = now - timedelta(
            days=completed_days or settings.completed_job_retention_days
        )
        failed_cutoff = now - timedelta(days=failed_days or settings.failed_job_retention_days)

        result = await self.db.execute(
            delete(Job).where(
                or_(
                    and_(Job.status == JobStatus.SUCCESS, Job.finished_at < completed_cutoff),
                    and_(
                        Job.status.in_([JobStatus.FAILED, JobStatus.CANCELED]),
                        Job.finished_at < failed_cutoff,
                    ),
                )
            )
        )
        await self.db.flush()

        if result.rowcount:
            logger.info("finished_jobs_purged", count=result.rowcount)
        return result.rowcount
