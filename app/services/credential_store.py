"""
Two-tier storage for OAuth credential records.

The durable repository is the source of truth; the TTL cache in front of it
only ever holds records that were durably written by ``put``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from app.core.config import TimeUnit
from app.core.logging import redact
from app.models.credentials import CredentialRecord
from app.services.errors import StoreError, StorePersistError
from app.services.ttl_cache import TTLCache
from app.utils.time import Clock, seconds_until_next, utcnow

logger = logging.getLogger(__name__)


class CredentialRepository(Protocol):
    """Append-only durable store keyed by access token and indexed by identity."""

    def create(self, record: CredentialRecord) -> None:
        ...

    def find_latest(self, access_token: str) -> Optional[CredentialRecord]:
        ...

    def find_latest_for_identity(
        self, provider_id: str, user_id: Optional[str]
    ) -> Optional[CredentialRecord]:
        ...


class CredentialRecordStore:
    """Write-through credential store with a durable tier and a fast cache."""

    def __init__(
        self,
        repository: CredentialRepository,
        cache: TTLCache[CredentialRecord],
        *,
        ttl_unit: TimeUnit = "day",
        clock: Clock = utcnow,
    ) -> None:
        self._repository = repository
        self._cache = cache
        self._ttl_unit = ttl_unit
        self._clock = clock

    async def put(self, record: CredentialRecord) -> None:
        """Persist durably, then cache under the record's access token."""
        try:
            await asyncio.to_thread(self._repository.create, record)
        except StorePersistError:
            logger.error("Durable write failed for token %s", redact(record.access_token))
            raise
        except Exception as exc:
            logger.error(
                "Durable write failed for token %s: %s", redact(record.access_token), exc
            )
            raise StorePersistError("Failed to persist credential record.") from exc

        ttl = seconds_until_next(self._ttl_unit, now=self._clock())
        self._cache.set(record.access_token, record, ttl)
        logger.info(
            "Stored credential %s for provider id %s", redact(record.access_token), record.provider_id
        )

    async def get(self, access_token: str) -> Optional[CredentialRecord]:
        """
        Return the record for ``access_token`` or ``None``.

        A durable hit is not copied into the cache; only ``put`` populates it.
        """
        cached = self._cache.get(access_token)
        if cached is not None:
            return cached

        try:
            record = await asyncio.to_thread(self._repository.find_latest, access_token)
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError("Failed to read credential record.") from exc

        if record is None:
            logger.info("No credential stored for token %s", redact(access_token))
        return record

    async def latest_for_identity(
        self, provider_id: str, user_id: Optional[str]
    ) -> Optional[CredentialRecord]:
        """Return the newest durable record for an identity, bypassing the cache."""
        try:
            return await asyncio.to_thread(
                self._repository.find_latest_for_identity, provider_id, user_id
            )
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError("Failed to read credential record.") from exc

    def evict(self, access_token: str) -> bool:
        """Drop the cached entry for ``access_token`` so no reader reuses it."""
        return self._cache.delete(access_token)

    def is_cached(self, access_token: str) -> bool:
        return access_token in self._cache


__all__ = ["CredentialRecordStore", "CredentialRepository"]
