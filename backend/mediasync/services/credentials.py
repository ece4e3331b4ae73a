"""Credential resolution for Google Drive integrations."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from mediasync.core.exceptions import ConfigurationError
from mediasync.core.logging import get_logger
from mediasync.core.security import SecretCipher, SecretDecryptionError
from mediasync.db.models import ApiIntegration
from mediasync.services.google_drive import refresh_access_token

logger = get_logger(__name__)

# Keys inside ApiIntegration.config
CLIENT_ID_KEY = "gdriveClientId"
REFRESH_TOKEN_KEY = "gdriveRefreshToken"

TokenRefresher = Callable[[str, str, str], Awaitable[str]]


class CredentialResolver:
    """Turns a stored integration into a usable access token.

    Secrets are decrypted through the injected cipher and the refresh
    token is exchanged on every call; access tokens are never stored.
    """

    def __init__(
        self,
        db: AsyncSession,
        cipher: SecretCipher,
        token_refresher: TokenRefresher = refresh_access_token,
    ):
        self.db = db
        self.cipher = cipher
        self.token_refresher = token_refresher

    async def resolve_access_token(self, integration_id: str) -> str:
        """Load, decrypt and refresh an integration's credentials.

        Args:
            integration_id: ApiIntegration ID.

        Returns:
            A short-lived access token.

        Raises:
            ConfigurationError: Integration missing, incomplete, or its
                secrets cannot be decrypted.
            AuthError: The provider rejected the refresh token.
            TransientProviderError: The token endpoint was unreachable.
        """
        integration = await self.db.get(ApiIntegration, integration_id)
        if integration is None:
            raise ConfigurationError(f"ApiIntegration {integration_id} not found")

        config = integration.config or {}
        client_id = config.get(CLIENT_ID_KEY)
        encrypted_refresh_token = config.get(REFRESH_TOKEN_KEY)
        encrypted_client_secret = integration.api_key_encrypted

        if not client_id or not encrypted_refresh_token or not encrypted_client_secret:
            raise ConfigurationError(
                f"Missing Google Drive credentials in integration {integration_id}"
            )

        try:
            client_secret = self.cipher.decrypt(encrypted_client_secret)
            refresh_token = self.cipher.decrypt(encrypted_refresh_token)
        except SecretDecryptionError as e:
            raise ConfigurationError(
                f"Could not decrypt credentials for integration {integration_id}"
            ) from e

        access_token = await self.token_refresher(refresh_token, client_id, client_secret)

        logger.debug("access_token_resolved", integration_id=integration_id)
        return access_token
