"""Job model for background task tracking."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mediasync.db.base import Base
from mediasync.db.models.enums import JobStatus, JobType


class Job(Base):
    """A queued unit of background work."""

    __tablename__ = "jobs"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # Job type and status
    type: Mapped[JobType] = mapped_column(Enum(JobType), nullable=False)
    status: Mapped[JobStatus] = mapped_column(Enum(JobStatus), default=JobStatus.QUEUED)
    priority: Mapped[int] = mapped_column(Integer, default=0)

    # Channel the job works on; channels live outside this service
    channel_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    # Job payload (JSON stored as text for SQLite compatibility)
    payload_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Job result (JSON stored as text, e.g. imported/skipped counts)
    result_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Retry handling
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    next_retry_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Indexes
    __table_args__ = (
        Index("ix_jobs_status_type_priority", "status", "type", "priority"),
        Index("ix_jobs_channel_id", "channel_id"),
    )
