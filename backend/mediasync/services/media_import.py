"""Dedup and import of Drive files into the media catalog.

Each descriptor is imported independently, in its own session:
1. Unsupported MIME types are skipped
2. Files already cataloged for the channel are skipped
3. Everything else becomes a MediaItem with source=sync

The (channel_id, storage_file_id) unique constraint backs the existence
check, so a concurrent attempt that loses the insert race counts the file
as skipped instead of failing.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediasync.core.exceptions import PersistenceError
from mediasync.core.logging import get_logger
from mediasync.db.models import ApiIntegration, MediaCategory, MediaItem, MediaSource
from mediasync.services.google_drive import DriveFile, build_content_url
from mediasync.services.media_classifier import classify

logger = get_logger(__name__)

# Largest value a BIGINT column can hold
MAX_FILE_SIZE = 2**63 - 1


class ImportResult(BaseModel):
    """Counters for one import run."""

    imported: int = 0
    skipped: int = 0
    failed: int = 0


def parse_file_size(value: str | int | None) -> int | None:
    """Parse a provider-reported size, returning None when unusable.

    Only plain ASCII digit strings (or non-negative ints) that fit a
    signed 64-bit column are accepted.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not (text.isascii() and text.isdigit()):
        return None
    size = int(text)
    return size if size <= MAX_FILE_SIZE else None


class MediaImportService:
    """Imports Drive descriptors into the media catalog for one channel."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        """Initialize the import service.

        Args:
            session_maker: Factory for per-item database sessions.
        """
        self.session_maker = session_maker

    async def import_files(self, channel_id: str, files: Iterable[DriveFile]) -> ImportResult:
        """Import every new, supported file for a channel.

        Safe to run repeatedly against the same folder: files already in
        the catalog are counted as skipped and never duplicated.

        Args:
            channel_id: Channel that owns the imported entries.
            files: Descriptors from the remote listing, in order.

        Returns:
            ImportResult with imported, skipped and failed counts.
        """
        result = ImportResult()

        for file in files:
            if not file.id or not file.name or not file.mime_type:
                result.skipped += 1
                continue

            category = classify(file.mime_type)
            if category is MediaCategory.UNSUPPORTED:
                result.skipped += 1
                continue

            try:
                created = await self._import_one(channel_id, file, category)
            except PersistenceError as e:
                result.failed += 1
                logger.error(
                    "media_import_failed",
                    channel_id=channel_id,
                    storage_file_id=e.storage_file_id,
                    file_name=file.name,
                    error=e.message,
                )
                continue

            if created:
                result.imported += 1
                logger.info(
                    "media_imported",
                    channel_id=channel_id,
                    storage_file_id=file.id,
                    file_name=file.name,
                    media_type=category.value,
                )
            else:
                result.skipped += 1

        return result

    async def _import_one(
        self, channel_id: str, file: DriveFile, category: MediaCategory
    ) -> bool:
        """Create the catalog entry for one file if it is not there yet.

        Returns:
            True if a new entry was created, False if it already existed.

        Raises:
            PersistenceError: The existence check or insert failed for a
                reason other than the uniqueness constraint.
        """
        async with self.session_maker() as db:
            try:
                existing = await db.execute(
                    select(MediaItem.id).where(
                        MediaItem.channel_id == channel_id,
                        MediaItem.storage_file_id == file.id,
                    )
                )
                if existing.first() is not None:
                    return False

                db.add(
                    MediaItem(
                        channel_id=channel_id,
                        original_name=file.name,
                        url=build_content_url(file.id),
                        thumbnail_url=file.thumbnail_url or None,
                        type=category,
                        mime_type=file.mime_type,
                        file_size=parse_file_size(file.size),
                        source=MediaSource.SYNC,
                        storage_file_id=file.id,
                    )
                )
                await db.commit()
                return True

            except IntegrityError:
                # Lost the race to another attempt of the same job
                await db.rollback()
                logger.debug(
                    "media_import_duplicate",
                    channel_id=channel_id,
                    storage_file_id=file.id,
                )
                return False

            except (SQLAlchemyError, OverflowError, ValueError) as e:
                # Driver-level conversion errors surface outside SQLAlchemyError
                await db.rollback()
                raise PersistenceError(str(e), storage_file_id=file.id) from e

    async def touch_last_sync(self, integration_id: str) -> None:
        """Record when the integration's folder was last synced."""
        async with self.session_maker() as db:
            integration = await db.get(ApiIntegration, integration_id)
            if integration is None:
                logger.warning("last_sync_integration_missing", integration_id=integration_id)
                return
            integration.last_synced_at = datetime.now(timezone.utc)
            await db.commit()
