"""Tests for WorkerManager - worker pool lifecycle and maintenance."""

from __future__ import annotations

import asyncio
import signal
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from fakes import FakeDriveClient
from mediasync.db.models import Job, JobStatus, JobType
from mediasync.main import _install_signal_handlers
from mediasync.workers.gdrive_sync import GdriveSyncWorker
from mediasync.workers.manager import WorkerManager, build_worker_manager


@pytest.fixture
def manager(session_maker, cipher) -> WorkerManager:
    return build_worker_manager(
        session_maker=session_maker,
        cipher=cipher,
        drive_client=FakeDriveClient(),
        concurrency=3,
    )


class TestBuildWorkerManager:
    """Tests for build_worker_manager()."""

    def test_registers_sync_pool(self, manager, session_maker):
        assert manager.worker_count == 3
        assert all(isinstance(w, GdriveSyncWorker) for w in manager._workers)
        assert [w.worker_id for w in manager._workers] == [
            "GdriveSyncWorker-1",
            "GdriveSyncWorker-2",
            "GdriveSyncWorker-3",
        ]
        assert all(w.session_maker is session_maker for w in manager._workers)

    def test_pool_shares_one_pipeline(self, manager):
        services = {id(w.sync_service) for w in manager._workers}
        assert len(services) == 1

    def test_independent_managers(self, session_maker, cipher):
        first = build_worker_manager(session_maker=session_maker, cipher=cipher, concurrency=1)
        second = build_worker_manager(session_maker=session_maker, cipher=cipher, concurrency=1)

        assert first is not second
        assert first._workers[0] is not second._workers[0]


class TestLifecycle:
    """Tests for start() and stop()."""

    async def test_start_and_stop(self, manager):
        task = asyncio.create_task(manager.start())
        await asyncio.sleep(0.05)

        assert manager.is_running
        assert all(w.is_running for w in manager._workers)

        await manager.stop()
        await asyncio.wait_for(task, timeout=5)

        assert not manager.is_running
        assert not any(w.is_running for w in manager._workers)

    async def test_request_stop_from_sync_callback(self, manager):
        task = asyncio.create_task(manager.start())
        await asyncio.sleep(0.05)

        manager.request_stop()
        await asyncio.wait_for(task, timeout=5)

        assert not manager.is_running

    async def test_signal_handlers_stop_manager(self, manager):
        loop = asyncio.get_running_loop()
        with patch.object(loop, "add_signal_handler") as add_handler:
            _install_signal_handlers(manager)

        handled = {call.args[0]: call.args[1] for call in add_handler.call_args_list}
        assert set(handled) == {signal.SIGTERM, signal.SIGINT}
        assert all(callback == manager.request_stop for callback in handled.values())

        task = asyncio.create_task(manager.start())
        await asyncio.sleep(0.05)
        handled[signal.SIGTERM]()
        await asyncio.wait_for(task, timeout=5)

        assert not manager.is_running

    async def test_stop_when_not_running(self, manager):
        await manager.stop()

        assert not manager.is_running

    async def test_stats(self, manager):
        stats = await manager.get_stats()

        assert stats["manager"]["worker_count"] == 3
        assert stats["manager"]["running"] is False
        assert stats["queue"]["total"] == 0
        assert len(stats["workers"]) == 3


class TestMaintenance:
    """Tests for run_maintenance()."""

    async def test_requeues_stale_and_purges_old(self, manager, session_maker):
        now = datetime.now(timezone.utc)
        async with session_maker() as db:
            stale = Job(
                type=JobType.GDRIVE_SYNC,
                status=JobStatus.RUNNING,
                started_at=now - timedelta(hours=2),
                attempts=1,
            )
            finished = Job(
                type=JobType.GDRIVE_SYNC,
                status=JobStatus.SUCCESS,
                finished_at=now - timedelta(days=30),
            )
            db.add_all([stale, finished])
            await db.commit()

        result = await manager.run_maintenance()

        assert result == {"requeued": 1, "purged": 1}
        async with session_maker() as db:
            job = await db.get(Job, stale.id)
            assert job.status == JobStatus.QUEUED
            assert await db.get(Job, finished.id) is None
