"""Worker process entry point."""

from __future__ import annotations

import asyncio
import signal

from mediasync.core.config import settings
from mediasync.core.logging import get_logger, setup_logging
from mediasync.db.session import async_session_maker, engine, init_db
from mediasync.services.job_queue import JobQueueService
from mediasync.workers.manager import WorkerManager, build_worker_manager

logger = get_logger(__name__)


def _install_signal_handlers(manager: WorkerManager) -> None:
    """Stop the manager on SIGTERM/SIGINT."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, manager.request_stop)
        except (NotImplementedError, RuntimeError):
            # Signal handlers not supported (e.g., Windows)
            pass


async def run_worker() -> None:
    """Prepare the database and run the worker pool until signalled."""
    logger.info(
        "starting_worker_process",
        app_name=settings.app_name,
        version=settings.version,
        concurrency=settings.gdrive_sync_concurrency,
    )

    await init_db()

    async with async_session_maker() as db:
        await JobQueueService(db).recover_orphaned_jobs()
        await db.commit()

    manager = build_worker_manager()
    _install_signal_handlers(manager)

    try:
        await manager.start()
    finally:
        await engine.dispose()
        logger.info("worker_process_stopped")


def main() -> None:
    """Run the sync worker process."""
    setup_logging()
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
