"""Client for the external user directory service."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from app.core.config import UserDirectorySettings
from app.models.credentials import UserRecord
from app.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)


class UserDirectoryError(Exception):
    """Raised when the user directory cannot be queried or updated."""


class UserDirectoryClient:
    """Look up and create users keyed by their provider identity."""

    def __init__(
        self,
        settings: UserDirectorySettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        if settings.base_url is None:
            raise ValueError("USER_DIRECTORY_URL must be configured.")
        self._url = str(settings.base_url)
        self._settings = settings
        self._transport = transport
        self._retry = retry_config or RetryConfig(attempts=settings.retry_attempts)

    def _headers(self) -> Dict[str, str]:
        if not self._settings.service_token:
            return {}
        return {"Authorization": f"Bearer {self._settings.service_token}"}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.timeout,
            transport=self._transport,
            headers=self._headers(),
        )

    async def find_by_provider_id(self, provider_id: str) -> Optional[UserRecord]:
        """Return the active user linked to ``provider_id``, if any."""
        params = {"provider_id": provider_id, "limit": "1", "active": "true"}
        try:
            async with self._client() as client:
                response = await request_with_retry(
                    client.get, self._url, params=params, retry_config=self._retry
                )
            results = response.json().get("query_results") or []
            if not results:
                return None
            return UserRecord.model_validate(results[0])
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.warning("User lookup failed for provider id %s: %s", provider_id, exc)
            raise UserDirectoryError("User lookup failed.") from exc

    async def create_user(self, attributes: Dict[str, Any]) -> UserRecord:
        """Create a user. Not retried, since creation is not idempotent."""
        try:
            async with self._client() as client:
                response = await client.post(self._url, json=attributes)
            response.raise_for_status()
            new_user = response.json().get("new_user")
            if not new_user:
                raise UserDirectoryError("User directory returned no user.")
            return UserRecord.model_validate(new_user)
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.warning("User creation failed: %s", exc)
            raise UserDirectoryError("User creation failed.") from exc


__all__ = ["UserDirectoryClient", "UserDirectoryError"]
