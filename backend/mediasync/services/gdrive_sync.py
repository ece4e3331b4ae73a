"""Google Drive folder sync pipeline.

One run resolves credentials, lists the folder, imports new media and
stamps the integration's last-sync time. The pipeline keeps no state
between runs; repeated delivery of the same request is harmless.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediasync.core.logging import get_logger
from mediasync.core.security import SecretCipher
from mediasync.services.credentials import CredentialResolver, TokenRefresher
from mediasync.services.google_drive import GoogleDriveClient, refresh_access_token
from mediasync.services.media_import import ImportResult, MediaImportService

logger = get_logger(__name__)


class GdriveSyncRequest(BaseModel):
    """Payload of a GDRIVE_SYNC job."""

    model_config = ConfigDict(populate_by_name=True)

    channel_id: str = Field(alias="channelId", min_length=1)
    integration_id: str = Field(alias="integrationId", min_length=1)
    folder_id: str = Field(alias="folderId", min_length=1)


class GdriveSyncService:
    """Runs the sync pipeline for one request."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        cipher: SecretCipher,
        drive_client: GoogleDriveClient | None = None,
        token_refresher: TokenRefresher = refresh_access_token,
    ):
        self.session_maker = session_maker
        self.cipher = cipher
        self.drive_client = drive_client or GoogleDriveClient()
        self.token_refresher = token_refresher
        self.importer = MediaImportService(session_maker)

    async def run(self, request: GdriveSyncRequest) -> ImportResult:
        """Sync one Drive folder into the channel's catalog.

        Raises:
            ConfigurationError: Integration missing or unusable.
            AuthError: Refresh token rejected.
            TransientProviderError: Provider unreachable or throttling.
        """
        # Credential lookup gets its own short session
        async with self.session_maker() as db:
            resolver = CredentialResolver(db, self.cipher, self.token_refresher)
            access_token = await resolver.resolve_access_token(request.integration_id)

        files = await self.drive_client.list_folder(access_token, request.folder_id)
        logger.info(
            "gdrive_folder_listed",
            channel_id=request.channel_id,
            folder_id=request.folder_id,
            file_count=len(files),
        )

        result = await self.importer.import_files(request.channel_id, files)
        await self.importer.touch_last_sync(request.integration_id)
        return result
