"""Symmetric encryption utilities for the OAuth state handshake."""

from __future__ import annotations

import base64
import binascii
import hashlib
import secrets

from cryptography.fernet import Fernet, InvalidToken

DEFAULT_SECRET_BYTES = 32


class DecryptionError(ValueError):
    """Raised when a blob is malformed, tampered with or sealed under another key."""


def generate_secret(num_bytes: int = DEFAULT_SECRET_BYTES) -> str:
    """Return a URL-safe random string carrying ``num_bytes`` of entropy."""
    return secrets.token_urlsafe(num_bytes)


class SymmetricEncryptor:
    """
    Encrypt and decrypt strings under caller-supplied one-time keys.

    Keys are derived from the supplied secret with SHA-256 and used as Fernet
    keys, so every blob is AES-CBC with an HMAC-SHA256 tag and a random
    fixed-width IV carried inside the token. A blob plus its key is all that
    is needed to decrypt it.
    """

    @staticmethod
    def _fernet(key: str) -> Fernet:
        if not key:
            raise ValueError("Encryption key must be provided.")
        digest = hashlib.sha256(key.encode("utf-8")).digest()
        return Fernet(base64.urlsafe_b64encode(digest))

    def encrypt(self, plaintext: str, key: str) -> str:
        """Encrypt a plaintext string and return the URL-safe ciphertext blob."""
        token = self._fernet(key).encrypt(plaintext.encode("utf-8"))
        return token.decode("ascii")

    def decrypt(self, ciphertext: str, key: str) -> str:
        """Decrypt a ciphertext blob, raising ``DecryptionError`` on any failure."""
        fernet = self._fernet(key)
        try:
            plaintext = fernet.decrypt(ciphertext.encode("ascii"))
            return plaintext.decode("utf-8")
        except (InvalidToken, UnicodeError, binascii.Error, TypeError) as exc:
            raise DecryptionError(
                "Failed to decrypt value; invalid ciphertext or key."
            ) from exc


__all__ = ["DecryptionError", "SymmetricEncryptor", "generate_secret"]
