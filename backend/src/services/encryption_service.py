"""
Encryption service for stored calendar credentials.

Google OAuth tokens are kept in Professional.gcal_credentials as a Fernet
token wrapping a JSON document, so a database dump never exposes them.
"""

import base64
import json
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken

from core.config import ENCRYPTION_KEY


class EncryptionService:
    """Service for encrypting and decrypting JSON documents."""

    def __init__(self, key: str = ENCRYPTION_KEY):
        """Initialize with a base64-encoded Fernet key (44 characters, 32 bytes decoded).

        Generate one with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
        """
        if not key:
            raise ValueError("ENCRYPTION_KEY environment variable must be set")

        try:
            decoded_key = base64.urlsafe_b64decode(key)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid Fernet key format: {e}")
        if len(decoded_key) != 32:
            raise ValueError(
                f"Fernet key must be 32 bytes when decoded (44 base64 characters), got {len(decoded_key)} bytes"
            )

        self._fernet = Fernet(key.encode('utf-8'))

    def encrypt_data(self, data: Dict[str, Any]) -> str:
        """Encrypt a dictionary into a URL-safe token string.

        Raises:
            ValueError: If data cannot be serialized
        """
        try:
            json_str = json.dumps(data, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Failed to encrypt data: {e}")
        return self._fernet.encrypt(json_str.encode('utf-8')).decode('utf-8')

    def decrypt_data(self, encrypted_data: str) -> Dict[str, Any]:
        """Decrypt a token produced by encrypt_data.

        Raises:
            ValueError: If the token was tampered with, uses another key, or is not JSON
        """
        try:
            decrypted = self._fernet.decrypt(encrypted_data.encode('utf-8'))
            return json.loads(decrypted.decode('utf-8'))
        except (InvalidToken, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValueError(f"Failed to decrypt data: {e}")


_encryption_service: Optional[EncryptionService] = None


def get_encryption_service() -> EncryptionService:
    """Get the shared encryption service, creating it on first use."""
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = EncryptionService()
    return _encryption_service
