"""Unit tests for integration credential encryption."""

import pytest
from cryptography.fernet import Fernet

from infrastructure.notifications.models import Integration
from infrastructure.security import CredentialCipher, CredentialDecryptionError


@pytest.fixture
def cipher():
    return CredentialCipher(CredentialCipher.generate_key())


@pytest.mark.unit
class TestConstruction:
    @pytest.mark.parametrize("key", [None, ""])
    def test_missing_key(self, key):
        with pytest.raises(ValueError, match="ENCRYPTION_KEY is not configured"):
            CredentialCipher(key)

    def test_malformed_key(self):
        with pytest.raises(ValueError, match="ENCRYPTION_KEY is invalid"):
            CredentialCipher("not-a-fernet-key")

    def test_generated_key_is_valid_fernet_key(self):
        key = CredentialCipher.generate_key()

        assert isinstance(key, str)
        Fernet(key.encode())


@pytest.mark.unit
class TestDecrypt:
    def test_encrypt_hides_plaintext(self, cipher):
        token = cipher.encrypt("SG.secret")

        assert "SG.secret" not in token
        assert cipher.decrypt(token) == "SG.secret"

    @pytest.mark.parametrize("token", [None, ""])
    def test_empty_token_is_none(self, cipher, token):
        assert cipher.decrypt(token) is None

    def test_token_from_other_key_is_rejected(self, cipher):
        other = CredentialCipher(CredentialCipher.generate_key())
        token = other.encrypt("SG.secret")

        with pytest.raises(CredentialDecryptionError):
            cipher.decrypt(token)

    def test_garbage_token_is_rejected(self, cipher):
        with pytest.raises(CredentialDecryptionError):
            cipher.decrypt("gAAAA-garbage")


@pytest.mark.unit
class TestDecryptIntegration:
    def test_returns_plain_credential_fields(self, cipher):
        integration = Integration(
            id="int-1",
            service_type="twilio",
            api_key_encrypted=cipher.encrypt("AC123"),
            api_secret_encrypted=cipher.encrypt("auth-token"),
            sender_phone="+15550001111",
        )

        assert cipher.decrypt_integration(integration) == {
            "api_key": "AC123",
            "api_secret": "auth-token",
            "oauth_token": None,
            "sender_email": None,
            "sender_phone": "+15550001111",
        }
