"""Worker pool supervision.

``WorkerManager`` owns a fixed set of workers and a maintenance task for
the lifetime of one ``start()`` call. Nothing here is module-global; the
process entry point builds a manager with ``build_worker_manager()`` and
stops it on a signal.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediasync.core.config import settings
from mediasync.core.logging import get_logger
from mediasync.core.security import FernetCipher, SecretCipher
from mediasync.db.session import async_session_maker
from mediasync.services.gdrive_sync import GdriveSyncService
from mediasync.services.google_drive import GoogleDriveClient
from mediasync.services.job_queue import JobQueueService
from mediasync.workers.base import BaseWorker
from mediasync.workers.gdrive_sync import GdriveSyncWorker

logger = get_logger(__name__)


class WorkerManager:
    """Runs registered workers side by side until stopped.

    While running, a maintenance task periodically re-queues RUNNING jobs
    whose worker went away and deletes finished jobs past retention.
    """

    def __init__(
        self,
        *,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        stale_job_check_interval: int | None = None,
        stale_job_threshold_minutes: int | None = None,
        shutdown_timeout: float = 30.0,
    ):
        """Initialize the manager.

        Args:
            session_maker: Factory for maintenance and stats sessions, and
                the default for registered workers.
            stale_job_check_interval: Seconds between maintenance passes.
            stale_job_threshold_minutes: Age at which a RUNNING job is
                considered abandoned.
            shutdown_timeout: Seconds ``stop`` waits for in-flight jobs
                before cancelling them.
        """
        self.session_maker = session_maker or async_session_maker
        self.stale_job_check_interval = (
            stale_job_check_interval or settings.stale_job_check_interval
        )
        self.stale_job_threshold_minutes = (
            stale_job_threshold_minutes or settings.stale_job_threshold_minutes
        )
        self.shutdown_timeout = shutdown_timeout

        self._workers: list[BaseWorker] = []
        self._tasks: list[asyncio.Task] = []
        self._stopping = asyncio.Event()
        self._running = False
        self._started_at: datetime | None = None

    def register_worker(
        self,
        worker_class: type[BaseWorker],
        *,
        count: int = 1,
        **kwargs: Any,
    ) -> None:
        """Add ``count`` instances of ``worker_class`` to the pool.

        Extra keyword arguments go to each worker's constructor. Workers
        share the manager's session factory unless one is passed.
        """
        kwargs.setdefault("session_maker", self.session_maker)
        offset = len(self._workers)
        for n in range(1, count + 1):
            worker = worker_class(worker_id=f"{worker_class.__name__}-{offset + n}", **kwargs)
            self._workers.append(worker)
            logger.info(
                "worker_registered",
                worker_id=worker.worker_id,
                job_types=[jt.value for jt in worker.job_types],
            )

    async def start(self) -> None:
        """Run the pool; returns once ``stop()`` has been called and the
        workers have wound down."""
        if self._running:
            logger.warning("worker_manager_already_running")
            return

        self._running = True
        self._stopping.clear()
        self._started_at = datetime.now(timezone.utc)

        self._tasks = [
            asyncio.create_task(worker.run(), name=f"worker-{worker.worker_id}")
            for worker in self._workers
        ]
        maintenance = asyncio.create_task(self._maintenance_loop(), name="worker-maintenance")
        logger.info("worker_manager_started", worker_count=len(self._workers))

        try:
            await self._stopping.wait()
        finally:
            maintenance.cancel()
            await asyncio.gather(maintenance, return_exceptions=True)
            await self._drain()
            self._running = False
            logger.info("worker_manager_stopped")

    def request_stop(self) -> None:
        """Ask a running pool to shut down. Safe to call from a signal handler."""
        if not self._running:
            return
        logger.info("worker_manager_stopping")
        self._stopping.set()

    async def stop(self) -> None:
        """Ask a running pool to shut down."""
        self.request_stop()

    async def _drain(self) -> None:
        """Let in-flight jobs finish, cancelling workers that overrun."""
        for worker in self._workers:
            worker.request_shutdown()

        if not self._tasks:
            return

        _, pending = await asyncio.wait(self._tasks, timeout=self.shutdown_timeout)
        if pending:
            logger.warning("worker_shutdown_timeout", pending_workers=len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks = []

    async def _maintenance_loop(self) -> None:
        while True:
            await asyncio.sleep(self.stale_job_check_interval)
            try:
                await self.run_maintenance()
            except Exception as e:
                logger.error("maintenance_loop_error", error=str(e), exc_info=True)

    async def run_maintenance(self) -> dict[str, int]:
        """Requeue abandoned jobs and purge expired finished ones."""
        async with self.session_maker() as db:
            queue = JobQueueService(db)
            requeued = await queue.requeue_stale_jobs(
                stale_minutes=self.stale_job_threshold_minutes,
            )
            purged = await queue.purge_finished_jobs()
            await db.commit()

        return {"requeued": requeued, "purged": purged}

    async def get_stats(self) -> dict[str, Any]:
        """Pool, queue and per-worker statistics."""
        async with self.session_maker() as db:
            queue_stats = await JobQueueService(db).get_queue_stats()

        uptime = 0
        if self._running and self._started_at:
            uptime = int((datetime.now(timezone.utc) - self._started_at).total_seconds())

        return {
            "manager": {
                "running": self._running,
                "worker_count": len(self._workers),
                "uptime_seconds": uptime,
            },
            "queue": queue_stats,
            "workers": [w.stats for w in self._workers],
        }

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def worker_count(self) -> int:
        return len(self._workers)


def build_worker_manager(
    *,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    cipher: SecretCipher | None = None,
    drive_client: GoogleDriveClient | None = None,
    concurrency: int | None = None,
) -> WorkerManager:
    """Build a manager running the Google Drive sync worker pool.

    Args:
        session_maker: Session factory shared by queue and catalog access.
        cipher: Decryption capability for stored secrets.
        drive_client: Drive adapter. One client is shared by the pool so
            request pacing applies across workers.
        concurrency: Number of sync jobs processed at once.
    """
    session_maker = session_maker or async_session_maker
    sync_service = GdriveSyncService(
        session_maker,
        cipher or FernetCipher(),
        drive_client=drive_client,
    )

    manager = WorkerManager(session_maker=session_maker)
    manager.register_worker(
        GdriveSyncWorker,
        count=concurrency or settings.gdrive_sync_concurrency,
        sync_service=sync_service,
        poll_interval=settings.worker_poll_interval,
    )
    return manager
