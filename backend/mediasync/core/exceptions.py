"""Error taxonomy for the media sync worker."""

from __future__ import annotations


class MediaSyncError(Exception):
    """Base exception for media sync errors."""

    def __init__(self, message: str, code: str = "MEDIA_SYNC_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ConfigurationError(MediaSyncError):
    """Raised when an integration is missing, incomplete or undecryptable.

    Fatal for the job: retrying will not fix stored configuration.
    """

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")


class AuthError(MediaSyncError):
    """Raised when the provider rejects the refresh token.

    The integration needs to be re-authorized by a person.
    """

    def __init__(self, message: str):
        super().__init__(message, "AUTH_ERROR")


class TransientProviderError(MediaSyncError):
    """Raised for network failures, rate limiting and provider 5xx responses."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message, "TRANSIENT_PROVIDER_ERROR")
        self.status = status


class PersistenceError(MediaSyncError):
    """Raised when a single catalog write fails."""

    def __init__(self, message: str, storage_file_id: str | None = None):
        super().__init__(message, "PERSISTENCE_ERROR")
        self.storage_file_id = storage_file_id


# Kinds that abort a job without further delivery attempts
FATAL_ERRORS: tuple[type[MediaSyncError], ...] = (ConfigurationError, AuthError)
