"""
One-time OAuth state tokens guarding the authorization redirect against CSRF.

Each issued state is a random value encrypted under its own random key. The
ciphertext is handed to the provider and doubles as the cache key under which
the plaintext and key are held until the callback arrives.
"""

from __future__ import annotations

import hmac
import logging

from app.core.config import TimeUnit
from app.core.logging import redact
from app.models.credentials import StateEntry
from app.services.encryption import DecryptionError, SymmetricEncryptor, generate_secret
from app.services.errors import StateUnrecognizedError
from app.services.ttl_cache import TTLCache
from app.utils.time import Clock, seconds_until_next, utcnow

logger = logging.getLogger(__name__)


class OAuthStateManager:
    """Issue encrypted state tokens and validate each of them at most once."""

    def __init__(
        self,
        cache: TTLCache[StateEntry],
        encryptor: SymmetricEncryptor,
        *,
        ttl_unit: TimeUnit = "day",
        clock: Clock = utcnow,
    ) -> None:
        self._cache = cache
        self._encryptor = encryptor
        self._ttl_unit = ttl_unit
        self._clock = clock

    def issue_state(self) -> str:
        """Create a state token valid until the start of the next calendar unit."""
        plain_state = generate_secret()
        password = generate_secret()
        encrypted_state = self._encryptor.encrypt(plain_state, password)

        ttl = seconds_until_next(self._ttl_unit, now=self._clock())
        self._cache.set(
            encrypted_state,
            StateEntry(plain_state=plain_state, password=password),
            ttl,
        )
        logger.info("Issued OAuth state %s (ttl=%ss)", redact(encrypted_state), ttl)
        return encrypted_state

    def consume_state(self, encrypted_state: str) -> None:
        """
        Validate a state token returned by the provider.

        The cache entry is removed before validation, so a token can never be
        presented twice. Absence and validation failure raise the same
        ``StateUnrecognizedError``.
        """
        entry = self._cache.pop(encrypted_state) if encrypted_state else None
        if entry is None:
            logger.warning("Rejected unknown OAuth state %s", redact(encrypted_state))
            raise StateUnrecognizedError("OAuth state unrecognized.")

        try:
            decrypted = self._encryptor.decrypt(encrypted_state, entry.password)
        except DecryptionError as exc:
            logger.warning("OAuth state %s failed to decrypt", redact(encrypted_state))
            raise StateUnrecognizedError("OAuth state unrecognized.") from exc

        if not hmac.compare_digest(decrypted.encode("utf-8"), entry.plain_state.encode("utf-8")):
            logger.warning("OAuth state %s did not match", redact(encrypted_state))
            raise StateUnrecognizedError("OAuth state unrecognized.")

        logger.info("Consumed OAuth state %s", redact(encrypted_state))


__all__ = ["OAuthStateManager"]
