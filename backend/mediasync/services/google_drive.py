"""Google Drive adapter for the sync worker.

Provides:
- Refresh-token exchange for short-lived access tokens
- Non-recursive folder listing with pagination
- Request pacing to stay under Drive API quotas

Provider failures are translated into the worker's error taxonomy so the
job runner can tell fatal problems from ones worth retrying.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials as OAuthCredentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from pydantic import BaseModel, ConfigDict, Field

from mediasync.core.config import settings
from mediasync.core.exceptions import AuthError, ConfigurationError, TransientProviderError
from mediasync.core.logging import get_logger

logger = get_logger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
LIST_FIELDS = "nextPageToken, files(id, name, mimeType, size, thumbnailLink)"

# 403 responses carrying these reasons are quota problems, not permission ones
RATE_LIMIT_REASONS = ("ratelimitexceeded", "userratelimitexceeded", "rate limit", "quota")


class RequestPacer:
    """Rate limiter for Google API requests.

    Implements:
    - Minimum delay between requests (prevents burst requests)
    - Per-minute request limiting with sliding window
    """

    def __init__(
        self,
        min_delay: float = 0.5,
        requests_per_minute: int = 60,
    ):
        self.min_delay = min_delay
        self.requests_per_minute = requests_per_minute
        self._last_request: datetime | None = None
        self._request_times: list[datetime] = []
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until it's safe to make a request."""
        async with self._lock:
            now = datetime.now(timezone.utc)

            cutoff = now - timedelta(seconds=60)
            self._request_times = [t for t in self._request_times if t > cutoff]

            if len(self._request_times) >= self.requests_per_minute:
                # Wait until oldest request falls out of window
                oldest = self._request_times[0]
                wait_time = 60 - (now - oldest).total_seconds()
                if wait_time > 0:
                    logger.debug(
                        "rate_pacer_waiting",
                        wait_seconds=round(wait_time, 2),
                        reason="per_minute_limit",
                    )
                    await asyncio.sleep(wait_time)
                    now = datetime.now(timezone.utc)

            if self._last_request and self.min_delay > 0:
                elapsed = (now - self._last_request).total_seconds()
                if elapsed < self.min_delay:
                    await asyncio.sleep(self.min_delay - elapsed)

            self._last_request = datetime.now(timezone.utc)
            self._request_times.append(self._last_request)


# Shared across workers in the process (initialized lazily with settings)
_pacer: RequestPacer | None = None


def get_request_pacer() -> RequestPacer:
    """Get or create the process-wide request pacer."""
    global _pacer
    if _pacer is None:
        _pacer = RequestPacer(
            min_delay=settings.google_request_delay,
            requests_per_minute=settings.google_requests_per_minute,
        )
    return _pacer


class DriveFile(BaseModel):
    """A file directly inside a Drive folder, as reported by the provider."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")
    thumbnail_url: str | None = Field(default=None, alias="thumbnailLink")
    # Drive reports byte size as a string; parsed by the import engine
    size: str | None = None


def build_content_url(file_id: str) -> str:
    """Direct-content URL for a Drive file; needs no API round-trip."""
    return f"{settings.drive_content_base_url.rstrip('/')}/{file_id}"


async def refresh_access_token(
    refresh_token: str,
    client_id: str,
    client_secret: str,
    token_uri: str | None = None,
) -> str:
    """Exchange a refresh token for a short-lived access token.

    Args:
        refresh_token: Decrypted OAuth refresh token.
        client_id: OAuth client ID.
        client_secret: Decrypted OAuth client secret.
        token_uri: Token endpoint. Defaults to settings.google_token_uri.

    Returns:
        The access token.

    Raises:
        AuthError: If the provider rejects the grant (revoked consent,
            invalid or expired refresh token).
        TransientProviderError: If the token endpoint is unreachable.
    """
    creds = OAuthCredentials(
        token=None,
        refresh_token=refresh_token,
        token_uri=token_uri or settings.google_token_uri,
        client_id=client_id,
        client_secret=client_secret,
    )

    try:
        await asyncio.to_thread(creds.refresh, Request())
    except RefreshError as e:
        raise AuthError(f"Token refresh rejected: {e}") from e
    except TransportError as e:
        raise TransientProviderError(f"Token endpoint unreachable: {e}") from e

    if not creds.token:
        raise AuthError("Token refresh returned no access token")
    return creds.token


def _translate_http_error(e: HttpError, folder_id: str) -> Exception:
    """Map a Drive API HttpError onto the worker error taxonomy."""
    status = e.resp.status
    detail = str(e).lower()

    if status == 429 or status >= 500:
        return TransientProviderError(f"Drive API error {status}: {e}", status=status)
    if status == 403 and any(reason in detail for reason in RATE_LIMIT_REASONS):
        return TransientProviderError(f"Drive API rate limited: {e}", status=status)
    if status == 401:
        return AuthError(f"Drive API rejected access token for folder {folder_id}")
    if status in (403, 404):
        return ConfigurationError(f"Folder {folder_id} is not accessible ({status})")
    return TransientProviderError(f"Unexpected Drive API error {status}: {e}", status=status)


class GoogleDriveClient:
    """Thin async wrapper around the Drive v3 files API."""

    def __init__(
        self,
        *,
        page_size: int | None = None,
        pacer: RequestPacer | None = None,
    ):
        """Initialize the client.

        Args:
            page_size: Files requested per listing page.
            pacer: Request pacer. Defaults to the process-wide pacer.
        """
        self.page_size = page_size or settings.gdrive_page_size
        self._pacer = pacer

    @property
    def pacer(self) -> RequestPacer:
        return self._pacer or get_request_pacer()

    def _build_service(self, access_token: str) -> Any:
        creds = OAuthCredentials(token=access_token)
        return build("drive", "v3", credentials=creds, cache_discovery=False)

    async def list_folder(self, access_token: str, folder_id: str) -> list[DriveFile]:
        """List the files directly inside a folder.

        Subfolders and trashed items are excluded; the listing does not
        descend into subfolders. Pages are followed until exhausted.

        Args:
            access_token: Short-lived OAuth access token.
            folder_id: Drive folder ID.

        Returns:
            File descriptors in provider order.

        Raises:
            TransientProviderError: Network failure, rate limiting or 5xx.
            AuthError: The access token was rejected.
            ConfigurationError: The folder does not exist or is not shared
                with the authorized account.
        """
        service = self._build_service(access_token)
        query = (
            f"'{folder_id}' in parents and trashed = false "
            f"and mimeType != '{FOLDER_MIME_TYPE}'"
        )

        files: list[DriveFile] = []
        page_token: str | None = None
        while True:
            await self.pacer.acquire()
            request = service.files().list(
                q=query,
                fields=LIST_FIELDS,
                pageToken=page_token,
                pageSize=self.page_size,
                supportsAllDrives=True,
                includeItemsFromAllDrives=True,
            )

            try:
                result = await asyncio.to_thread(request.execute)
            except HttpError as e:
                raise _translate_http_error(e, folder_id) from e
            except (httplib2.HttpLib2Error, OSError) as e:
                raise TransientProviderError(f"Drive API unreachable: {e}") from e

            for item in result.get("files", []):
                if item.get("mimeType") == FOLDER_MIME_TYPE:
                    continue
                files.append(DriveFile.model_validate(item))

            page_token = result.get("nextPageToken")
            if not page_token:
                break

        logger.debug("drive_folder_listed", folder_id=folder_id, file_count=len(files))
        return files
