"""MediaItem model - one asset in the media catalog."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Enum, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mediasync.db.base import Base
from mediasync.db.models.enums import MediaCategory, MediaSource


def _enum_values(enum_cls: type) -> list[str]:
    return [member.value for member in enum_cls]


class MediaItem(Base):
    """A media library entry owned by a channel.

    At most one entry exists per (channel_id, storage_file_id); the
    constraint is what keeps overlapping sync attempts from inserting
    the same remote file twice.
    """

    __tablename__ = "media_items"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    channel_id: Mapped[str] = mapped_column(String(36), nullable=False)

    # File info
    original_name: Mapped[str] = mapped_column(String(1024), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[MediaCategory] = mapped_column(
        Enum(MediaCategory, values_callable=_enum_values, native_enum=False, length=16),
        nullable=False,
    )
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    # Provenance
    source: Mapped[MediaSource] = mapped_column(
        Enum(MediaSource, values_callable=_enum_values, native_enum=False, length=16),
        default=MediaSource.UPLOAD,
        nullable=False,
    )
    storage_file_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        UniqueConstraint(
            "channel_id", "storage_file_id", name="uq_media_items_channel_storage_file"
        ),
        Index("ix_media_items_channel_id", "channel_id"),
    )
