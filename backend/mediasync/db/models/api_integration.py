"""ApiIntegration model for a channel's link to an external provider."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mediasync.db.base import Base


class ApiIntegration(Base):
    """Stored provider credentials for one channel.

    Secrets are stored encrypted. For Google Drive the client id and the
    encrypted refresh token live in ``config`` and the encrypted client
    secret in ``api_key_encrypted``. Rows are created and removed by the
    OAuth connect flow; the sync worker only writes ``last_synced_at``.
    """

    __tablename__ = "api_integrations"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    provider: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    channel_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)

    # Provider config (gdriveClientId, gdriveRefreshToken, ...)
    config: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Encrypted client secret
    api_key_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
