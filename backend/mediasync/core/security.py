"""Symmetric encryption for stored integration secrets."""

from __future__ import annotations

from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken

from mediasync.core.config import settings
from mediasync.core.logging import get_logger

logger = get_logger(__name__)


class SecretDecryptionError(Exception):
    """Raised when a stored secret cannot be decrypted."""

    pass


class SecretCipher(Protocol):
    """Decryption capability handed to the credential resolver."""

    def decrypt(self, ciphertext: str) -> str: ...


class FernetCipher:
    """Fernet-backed implementation of SecretCipher."""

    def __init__(self, key: str | bytes | None = None):
        """Initialize the cipher.

        Args:
            key: Base64 Fernet key. Defaults to MEDIASYNC_ENCRYPTION_KEY.
        """
        key = key if key is not None else settings.encryption_key
        if key is None:
            # Nothing encrypted under a throwaway key can be read back later
            key = Fernet.generate_key()
            logger.warning(
                "encryption_key_generated",
                message="Using auto-generated encryption key. Set MEDIASYNC_ENCRYPTION_KEY.",
            )
        if isinstance(key, str):
            key = key.encode()
        self._fernet = Fernet(key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string."""
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a Fernet token.

        Raises:
            SecretDecryptionError: If the token is malformed or was
                encrypted under a different key.
        """
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except (InvalidToken, ValueError, UnicodeDecodeError) as e:
            raise SecretDecryptionError("Stored secret could not be decrypted") from e
