"""Worker configuration using pydantic-settings."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Worker settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MEDIASYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "MediaSync"
    version: str = "0.1.0"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./config/mediasync.db",
        description="Database connection URL",
    )

    # Secrets
    encryption_key: str | None = Field(
        default=None,
        description="Fernet key used to decrypt stored integration secrets",
    )

    # Worker settings
    gdrive_sync_concurrency: int = Field(
        default=2,
        ge=1,
        le=16,
        description="Number of Google Drive sync jobs processed concurrently",
    )
    worker_poll_interval: float = Field(
        default=1.0,
        gt=0,
        description="Seconds a worker waits between queue polls when idle",
    )
    job_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Delivery attempts per job before it is marked FAILED",
    )
    stale_job_check_interval: int = Field(
        default=300,
        ge=10,
        description="Seconds between maintenance passes",
    )
    stale_job_threshold_minutes: int = Field(
        default=30,
        ge=1,
        description="RUNNING jobs older than this are re-queued",
    )
    completed_job_retention_days: int = Field(
        default=7,
        ge=1,
        description="Days to keep SUCCESS jobs before purging",
    )
    failed_job_retention_days: int = Field(
        default=30,
        ge=1,
        description="Days to keep FAILED jobs before purging",
    )

    # Google Drive
    google_token_uri: str = "https://oauth2.googleapis.com/token"
    google_request_delay: float = Field(
        default=0.2,
        ge=0,
        description="Minimum seconds between Google API requests",
    )
    google_requests_per_minute: int = Field(
        default=120,
        ge=1,
        description="Maximum Google API requests per minute",
    )
    gdrive_page_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Files requested per Drive listing page",
    )
    drive_content_base_url: str = Field(
        default="https://lh3.googleusercontent.com/d",
        description="Direct-content host used to build catalog URLs",
    )


# Global settings instance
settings = Settings()
