"""
Helpers for detecting stale credentials and rotating them through the provider.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

import httpx

from app.clients.oauth_provider import OAuthTokenExchangeError
from app.core.logging import redact
from app.models.credentials import CredentialRecord, ProviderTokens
from app.services.credential_store import CredentialRecordStore
from app.services.errors import (
    CredentialNotFoundError,
    CredentialSupersededError,
    RefreshProviderRejectedError,
    RefreshStoreFailedError,
    StorePersistError,
)
from app.services.transport_codec import encode_access_token
from app.utils.time import Clock, expires_at_from, is_expired, utcnow

logger = logging.getLogger(__name__)


class CredentialState(str, Enum):
    FRESH = "fresh"
    EXPIRED = "expired"
    REFRESHING = "refreshing"
    ROTATED = "rotated"
    REFRESH_FAILED = "refresh_failed"


class TokenRefresher(Protocol):
    async def refresh_access_token(self, refresh_token: str) -> ProviderTokens:
        ...


@dataclass(frozen=True)
class FreshnessResult:
    """Outcome of ``ensure_fresh``; ``transport_token`` is set only after rotation."""

    record: CredentialRecord
    rotated: bool = False
    transport_token: Optional[str] = None


class TokenRefreshOrchestrator:
    """Return usable credentials, refreshing them with the provider when stale."""

    def __init__(
        self,
        store: CredentialRecordStore,
        oauth_client: TokenRefresher,
        *,
        leeway_seconds: int = 0,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._leeway = leeway_seconds
        self._clock = clock
        # One in-flight refresh per identity; idle locks are collected.
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()

    def state_of(self, record: CredentialRecord) -> CredentialState:
        if is_expired(record.expires_at, now=self._clock(), leeway_seconds=self._leeway):
            return CredentialState.EXPIRED
        return CredentialState.FRESH

    async def ensure_fresh(self, access_token: str) -> FreshnessResult:
        """Look up ``access_token`` and rotate it if it has expired."""
        record = await self._store.get(access_token)
        if record is None:
            raise CredentialNotFoundError("No credential stored for the supplied token.")

        if self.state_of(record) is CredentialState.FRESH:
            return FreshnessResult(record=record)

        async with self._identity_lock(record):
            await self._ensure_current(record)
            rotated = await self._rotate(record)
        return FreshnessResult(
            record=rotated,
            rotated=True,
            transport_token=encode_access_token(rotated.access_token),
        )

    def _identity_lock(self, record: CredentialRecord) -> asyncio.Lock:
        key = (record.provider_id, record.user_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def _ensure_current(self, record: CredentialRecord) -> None:
        """Refuse to refresh a record that a newer one has replaced."""
        latest = await self._store.latest_for_identity(record.provider_id, record.user_id)
        if latest is None or latest.access_token == record.access_token:
            return
        self._store.evict(record.access_token)
        logger.warning(
            "Credential %s was superseded by %s; refresh refused",
            redact(record.access_token),
            redact(latest.access_token),
        )
        raise CredentialSupersededError(
            "Credential was replaced by a newer one; authorization required."
        )

    async def _rotate(self, record: CredentialRecord) -> CredentialRecord:
        # Evict first so concurrent readers cannot keep using the stale token.
        self._store.evict(record.access_token)
        logger.info(
            "Credential %s is %s; refreshing",
            redact(record.access_token),
            CredentialState.REFRESHING.value,
        )

        try:
            tokens = await self._oauth.refresh_access_token(record.refresh_token)
        except (OAuthTokenExchangeError, httpx.HTTPError) as exc:
            logger.warning(
                "Provider rejected refresh for provider id %s: %s", record.provider_id, exc
            )
            raise RefreshProviderRejectedError(
                "Provider rejected the refresh token; authorization required."
            ) from exc

        if not tokens.access_token:
            logger.warning("Refresh for provider id %s returned no access token", record.provider_id)
            raise RefreshProviderRejectedError("Provider returned no access token.")

        refreshed_at = self._clock()
        rotated = CredentialRecord(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token or record.refresh_token,
            expires_at=expires_at_from(tokens.expires_in, now=refreshed_at),
            provider_id=record.provider_id,
            user_id=record.user_id,
            created_at=refreshed_at,
        )

        try:
            await self._store.put(rotated)
        except StorePersistError as exc:
            logger.critical(
                "Provider rotated credential for provider id %s but persistence failed; "
                "new token %s is orphaned",
                record.provider_id,
                redact(rotated.access_token),
            )
            raise RefreshStoreFailedError(
                "Rotated credential could not be persisted.",
                provider_id=record.provider_id,
            ) from exc

        logger.info(
            "Rotated credential %s -> %s",
            redact(record.access_token),
            redact(rotated.access_token),
        )
        return rotated


__all__ = [
    "CredentialState",
    "FreshnessResult",
    "TokenRefreshOrchestrator",
    "TokenRefresher",
]
