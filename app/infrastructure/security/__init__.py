"""Infrastructure security services.

Exports:
    CredentialCipher: Fernet encryption of integration credentials
    CredentialDecryptionError: Raised when a stored credential is unreadable
    verify_cron_secret: FastAPI dependency guarding trigger endpoints
"""

from infrastructure.security.credentials import (
    CredentialCipher,
    CredentialDecryptionError,
)
from infrastructure.security.cron import verify_cron_secret

__all__ = [
    "CredentialCipher",
    "CredentialDecryptionError",
    "verify_cron_secret",
]
