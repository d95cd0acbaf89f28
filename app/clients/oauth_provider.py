"""
OAuth provider utilities.

These helpers build the consent URL and talk to the provider's token and
profile endpoints.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict
from urllib.parse import urlencode

import httpx
from fastapi import status
from pydantic import ValidationError

from app.core.config import ProviderSettings
from app.models.credentials import ProviderIdentity, ProviderTokens

logger = logging.getLogger(__name__)


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint returns an error or an unusable payload."""


class OAuthIdentityError(Exception):
    """Raised when the profile endpoint cannot identify the user."""


class OAuthProviderClient:
    """Build authorization URLs, exchange codes and refresh tokens."""

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        credentials = f"{settings.client_id}:{settings.client_secret}".encode("utf-8")
        self._basic_auth = f"Basic {base64.b64encode(credentials).decode('ascii')}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._settings.http_timeout, transport=self._transport)

    def build_authorization_url(self, state: str) -> str:
        """Construct the provider consent URL carrying ``state``."""
        params = {
            "response_type": "code",
            "client_id": self._settings.client_id,
            "redirect_uri": str(self._settings.redirect_uri),
            "scope": " ".join(self._settings.scopes),
            "state": state,
        }
        return f"{self._settings.authorize_url}?{urlencode(params)}"

    async def _post_token_request(self, payload: Dict[str, str]) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.post(
                self._settings.token_url,
                data=payload,
                headers={"Authorization": self._basic_auth},
            )

        if response.status_code != status.HTTP_200_OK:
            logger.warning(
                "Token endpoint returned %s for grant %s",
                response.status_code,
                payload.get("grant_type"),
            )
            raise OAuthTokenExchangeError(response.text)

        try:
            return response.json()
        except ValueError as exc:
            raise OAuthTokenExchangeError("Token endpoint returned invalid JSON.") from exc

    async def exchange_authorization_code(self, code: str) -> ProviderTokens:
        """Exchange an authorization code for an access/refresh token pair."""
        token_payload = await self._post_token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": str(self._settings.redirect_uri),
            }
        )
        try:
            tokens = ProviderTokens.model_validate(token_payload)
        except ValidationError as exc:
            raise OAuthTokenExchangeError("Incomplete token payload returned.") from exc

        if not tokens.access_token or not tokens.refresh_token:
            raise OAuthTokenExchangeError("Incomplete token payload returned.")
        return tokens

    async def refresh_access_token(self, refresh_token: str) -> ProviderTokens:
        """
        Refresh the access token using a stored refresh token.

        Providers may or may not rotate the refresh token, so the returned
        ``refresh_token`` is optional. Never retried: a refresh token can be
        single-use.
        """
        token_payload = await self._post_token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )
        try:
            tokens = ProviderTokens.model_validate(token_payload)
        except ValidationError as exc:
            raise OAuthTokenExchangeError("Incomplete refresh payload returned.") from exc

        if not tokens.access_token:
            raise OAuthTokenExchangeError("Incomplete refresh payload returned.")
        return tokens

    async def fetch_identity(self, access_token: str) -> ProviderIdentity:
        """Fetch the profile of the user who granted ``access_token``."""
        async with self._client() as client:
            response = await client.get(
                self._settings.profile_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )

        if response.status_code != status.HTTP_200_OK:
            logger.warning("Profile endpoint returned %s", response.status_code)
            raise OAuthIdentityError(response.text)

        try:
            return ProviderIdentity.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise OAuthIdentityError("Profile payload missing user identifier.") from exc


__all__ = [
    "OAuthIdentityError",
    "OAuthProviderClient",
    "OAuthTokenExchangeError",
]
