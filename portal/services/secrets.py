### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Tenant Secret Encryption -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Tenant Secret Encryption

AES-256-GCM encryption for the tenant DB/API passwords stored in the app
database. Stored format is three hex fields: "iv:authTag:ciphertext"
(16-byte IV, 16-byte tag).

A SecretCipher is built once per application from
PortalSettings.encryption_key (64 hex chars) and handed to whoever needs
it; tests build their own with a throwaway key.
"""

import os
import secrets as _secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from portal.errors import ConfigurationError

MASK = "********"
IV_LENGTH = 16
TAG_LENGTH = 16


def mask_secret(value: str | None) -> str:
    """Mask shown instead of a stored secret ("" when nothing is stored)"""
    return MASK if value else ""


def generate_key_hex() -> str:
    """New random 256-bit key as 64 hex chars"""
    return _secrets.token_hex(32)


class SecretDecryptionError(ConfigurationError):
    """Stored secret is malformed or was encrypted with another key"""

    code = "secret_decryption_error"


class SecretCipher:
    """AES-256-GCM encrypt/decrypt for tenant secrets"""

    def __init__(self, key: bytes):
        if len(key) != 32:
            raise ConfigurationError("Encryption key must be exactly 32 bytes (64 hex characters)")
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_hex(cls, key_hex: str) -> "SecretCipher":
        """
        Build a cipher from the 64-hex-char setting.

        Raises:
            ConfigurationError: If the key is missing or malformed
        """
        if not key_hex:
            raise ConfigurationError(
                "PORTAL_ENCRYPTION_KEY is not set. Generate one with: "
                'python -c "import secrets; print(secrets.token_hex(32))"'
            )
        try:
            key = bytes.fromhex(key_hex)
        except ValueError as e:
            raise ConfigurationError("PORTAL_ENCRYPTION_KEY must be hexadecimal") from e
        return cls(key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt text into "iv:tag:ciphertext" hex"""
        iv = os.urandom(IV_LENGTH)
        sealed = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, stored: str) -> str:
        """
        Decrypt an "iv:tag:ciphertext" value.

        Raises:
            SecretDecryptionError: Malformed value or wrong key
        """
        parts = stored.split(":") if stored else []
        if len(parts) != 3:
            raise SecretDecryptionError("Invalid encrypted value format")
        try:
            iv, tag, ciphertext = (bytes.fromhex(p) for p in parts)
            plaintext = self._aesgcm.decrypt(iv, ciphertext + tag, None)
        except (ValueError, InvalidTag) as e:
            raise SecretDecryptionError("Failed to decrypt stored secret") from e
        return plaintext.decode("utf-8")

    def encrypt_optional(self, plaintext: str | None) -> str | None:
        """Encrypt, passing empty values through as None"""
        return self.encrypt(plaintext) if plaintext else None

    def decrypt_optional(self, stored: str | None) -> str | None:
        return self.decrypt(stored) if stored else None
