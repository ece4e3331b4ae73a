"""Tests for GdriveSyncWorker - end-to-end job processing."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from fakes import FakeDriveClient, drive_file, fake_token_refresher
from mediasync.core.exceptions import AuthError, ConfigurationError, TransientProviderError
from mediasync.db.models import ApiIntegration, Job, JobStatus, JobType, MediaItem
from mediasync.services.gdrive_sync import GdriveSyncRequest, GdriveSyncService
from mediasync.services.job_queue import JobQueueService
from mediasync.workers.base import NonRetryableError, RetryableError
from mediasync.workers.gdrive_sync import GdriveSyncWorker


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def drive_client() -> FakeDriveClient:
    return FakeDriveClient(
        files=[
            drive_file("f1", "image/png", size="1024", name="photo.png"),
            drive_file("f2", "application/pdf", name="brief.pdf"),
            drive_file("f3", "video/mp4", size="abc", name="clip.mp4"),
        ]
    )


@pytest.fixture
def worker(session_maker, cipher, drive_client) -> GdriveSyncWorker:
    service = GdriveSyncService(
        session_maker,
        cipher,
        drive_client=drive_client,
        token_refresher=fake_token_refresher,
    )
    return GdriveSyncWorker(sync_service=service, session_maker=session_maker, poll_interval=0.01)


async def enqueue(session_maker, payload: dict | None) -> str:
    async with session_maker() as db:
        job = await JobQueueService(db).enqueue(
            JobType.GDRIVE_SYNC, channel_id="channel-1", payload=payload
        )
        await db.commit()
        return job.id


async def load_job(session_maker, job_id: str) -> Job:
    async with session_maker() as db:
        return await db.get(Job, job_id)


async def catalog_count(session_maker) -> int:
    async with session_maker() as db:
        return await db.scalar(select(func.count(MediaItem.id)))


def sync_payload(integration_id: str, folder_id: str = "folder-1") -> dict:
    return {"channelId": "channel-1", "integrationId": integration_id, "folderId": folder_id}


# =============================================================================
# Job Lifecycle Tests
# =============================================================================


class TestSyncJob:
    """Tests for running sync jobs through the queue."""

    async def test_successful_sync(self, worker, session_maker, integration, drive_client):
        job_id = await enqueue(session_maker, sync_payload(integration.id))

        assert await worker.run_once() is True

        job = await load_job(session_maker, job_id)
        assert job.status == JobStatus.SUCCESS
        assert json.loads(job.result_json) == {"imported": 2, "skipped": 1, "failed": 0}
        assert drive_client.calls == [("access-for-refresh-token", "folder-1")]
        assert await catalog_count(session_maker) == 2

        async with session_maker() as db:
            row = await db.get(ApiIntegration, integration.id)
            assert row.last_synced_at is not None

    async def test_second_sync_is_noop(self, worker, session_maker, integration):
        await enqueue(session_maker, sync_payload(integration.id))
        await worker.run_once()

        job_id = await enqueue(session_maker, sync_payload(integration.id))
        await worker.run_once()

        job = await load_job(session_maker, job_id)
        assert job.status == JobStatus.SUCCESS
        assert json.loads(job.result_json) == {"imported": 0, "skipped": 3, "failed": 0}
        assert await catalog_count(session_maker) == 2

    async def test_empty_queue(self, worker):
        assert await worker.run_once() is False

    async def test_missing_integration_fails_without_retry(self, worker, session_maker, drive_client):
        job_id = await enqueue(session_maker, sync_payload("nonexistent"))

        await worker.run_once()

        job = await load_job(session_maker, job_id)
        assert job.status == JobStatus.FAILED
        assert job.attempts == 1
        assert "not found" in job.last_error
        assert drive_client.calls == []
        assert await catalog_count(session_maker) == 0

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            {"channelId": "channel-1", "folderId": "folder-1"},
            {"channelId": "channel-1", "integrationId": "", "folderId": "folder-1"},
        ],
    )
    async def test_invalid_payload_fails(self, worker, session_maker, payload):
        job_id = await enqueue(session_maker, payload)

        await worker.run_once()

        job = await load_job(session_maker, job_id)
        assert job.status == JobStatus.FAILED
        assert job.attempts == 1

    async def test_provider_outage_is_retried(self, worker, session_maker, integration, drive_client):
        drive_client.error = TransientProviderError("Drive API error 503", status=503)
        job_id = await enqueue(session_maker, sync_payload(integration.id))

        await worker.run_once()

        job = await load_job(session_maker, job_id)
        assert job.status == JobStatus.QUEUED
        assert job.next_retry_at is not None
        assert job.last_error == "Drive API error 503"

        async with session_maker() as db:
            row = await db.get(ApiIntegration, integration.id)
            assert row.last_synced_at is None

    async def test_inaccessible_folder_fails(self, worker, session_maker, integration, drive_client):
        drive_client.error = ConfigurationError("Folder folder-1 is not accessible (404)")
        job_id = await enqueue(session_maker, sync_payload(integration.id))

        await worker.run_once()

        job = await load_job(session_maker, job_id)
        assert job.status == JobStatus.FAILED

    async def test_worker_stats(self, worker, session_maker, integration):
        await enqueue(session_maker, sync_payload(integration.id))
        await enqueue(session_maker, None)

        await worker.run_once()
        await worker.run_once()

        assert worker.stats["jobs_processed"] == 1
        assert worker.stats["jobs_failed"] == 1
        assert worker.is_processing is False


# =============================================================================
# Error Classification Tests
# =============================================================================


class TestProcessErrors:
    """Tests for mapping sync failures onto retry decisions."""

    @pytest.fixture
    def job(self) -> Job:
        return Job(id="job-1", type=JobType.GDRIVE_SYNC, status=JobStatus.RUNNING)

    def make_worker(self, error: Exception) -> GdriveSyncWorker:
        service = AsyncMock(spec=GdriveSyncService)
        service.run.side_effect = error
        return GdriveSyncWorker(sync_service=service)

    @pytest.mark.parametrize(
        "error",
        [AuthError("invalid_grant"), ConfigurationError("Integration x not found")],
    )
    async def test_fatal_errors(self, job, error):
        worker = self.make_worker(error)

        with pytest.raises(NonRetryableError):
            await worker.process(job, sync_payload("integration-1"))

    async def test_transient_error(self, job):
        worker = self.make_worker(TransientProviderError("rate limited", status=429))

        with pytest.raises(RetryableError):
            await worker.process(job, sync_payload("integration-1"))

    async def test_request_passed_to_service(self, job):
        service = AsyncMock(spec=GdriveSyncService)
        service.run.return_value.model_dump.return_value = {"imported": 1}
        worker = GdriveSyncWorker(sync_service=service)

        await worker.process(job, sync_payload("integration-1", folder_id="folder-9"))

        (request,), _ = service.run.call_args
        assert request == GdriveSyncRequest(
            channel_id="channel-1", integration_id="integration-1", folder_id="folder-9"
        )
