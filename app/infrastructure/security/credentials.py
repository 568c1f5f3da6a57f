"""Integration credential encryption.

Integration API keys, secrets and OAuth tokens are stored Fernet-encrypted
and only decrypted when an adapter is built for a dispatch.
"""

from typing import Dict, Optional, TYPE_CHECKING

from cryptography.fernet import Fernet, InvalidToken

if TYPE_CHECKING:
    from infrastructure.notifications.models import Integration


class CredentialDecryptionError(Exception):
    """Raised when a stored credential cannot be decrypted."""


class CredentialCipher:
    """Encrypt and decrypt integration credentials with a Fernet key.

    Args:
        key: URL-safe base64 Fernet key (``ENCRYPTION_KEY``)

    Raises:
        ValueError: If no key is configured or the key is malformed
    """

    def __init__(self, key: Optional[str]):
        if not key:
            raise ValueError("ENCRYPTION_KEY is not configured")
        try:
            self._fernet = Fernet(key.encode() if isinstance(key, str) else key)
        except (TypeError, ValueError) as e:
            raise ValueError(f"ENCRYPTION_KEY is invalid: {e}") from e

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()

    def encrypt(self, value: str) -> str:
        return self._fernet.encrypt(value.encode()).decode()

    def decrypt(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        try:
            return self._fernet.decrypt(token.encode()).decode()
        except InvalidToken as e:
            raise CredentialDecryptionError("Stored credential could not be decrypted") from e

    def decrypt_integration(self, integration: "Integration") -> Dict[str, Optional[str]]:
        """Decrypted credential fields for an integration, ready for the adapter factory."""
        return {
            "api_key": self.decrypt(integration.api_key_encrypted),
            "api_secret": self.decrypt(integration.api_secret_encrypted),
            "oauth_token": self.decrypt(integration.oauth_token_encrypted),
            "sender_email": integration.sender_email,
            "sender_phone": integration.sender_phone,
        }
