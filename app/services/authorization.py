"""
OAuth authorization flow built on the state manager, the credential store and
the refresh orchestrator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from app.clients.oauth_provider import OAuthTokenExchangeError
from app.core.logging import redact
from app.models.credentials import (
    CredentialRecord,
    ProviderIdentity,
    ProviderTokens,
    UserRecord,
)
from app.services.credential_store import CredentialRecordStore
from app.services.oauth_state import OAuthStateManager
from app.services.token_refresh import FreshnessResult, TokenRefreshOrchestrator
from app.services.transport_codec import decode_access_token, encode_access_token
from app.utils.time import Clock, expires_at_from, utcnow

logger = logging.getLogger(__name__)


class AuthorizationProvider(Protocol):
    def build_authorization_url(self, state: str) -> str:
        ...

    async def exchange_authorization_code(self, code: str) -> ProviderTokens:
        ...

    async def fetch_identity(self, access_token: str) -> ProviderIdentity:
        ...


class UserDirectory(Protocol):
    async def find_by_provider_id(self, provider_id: str) -> Optional[UserRecord]:
        ...

    async def create_user(self, attributes: dict) -> UserRecord:
        ...


@dataclass(frozen=True)
class AuthorizationStart:
    authorization_url: str
    state: str


@dataclass(frozen=True)
class AuthorizationResult:
    record: CredentialRecord
    identity: ProviderIdentity
    transport_token: str
    user: Optional[UserRecord] = None


class AuthorizationFlowService:
    """Drive the redirect, callback and per-request authorization steps."""

    def __init__(
        self,
        *,
        state_manager: OAuthStateManager,
        oauth_client: AuthorizationProvider,
        store: CredentialRecordStore,
        orchestrator: TokenRefreshOrchestrator,
        user_directory: UserDirectory | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._states = state_manager
        self._oauth = oauth_client
        self._store = store
        self._orchestrator = orchestrator
        self._users = user_directory
        self._clock = clock

    def begin_authorization(self) -> AuthorizationStart:
        state = self._states.issue_state()
        return AuthorizationStart(
            authorization_url=self._oauth.build_authorization_url(state),
            state=state,
        )

    async def complete_authorization(self, state: str, code: str) -> AuthorizationResult:
        """
        Finish the callback: validate state, exchange the code, identify the
        user and persist the credential, in that order. Any failure stops the
        flow before later steps run.
        """
        self._states.consume_state(state)

        tokens = await self._oauth.exchange_authorization_code(code)
        if not tokens.refresh_token:
            raise OAuthTokenExchangeError("Token exchange returned no refresh token.")
        issued_at = self._clock()
        identity = await self._oauth.fetch_identity(tokens.access_token)
        user = await self._resolve_user(identity)

        record = CredentialRecord(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=expires_at_from(tokens.expires_in, now=issued_at),
            provider_id=identity.provider_id,
            user_id=user.user_id if user else None,
            created_at=issued_at,
        )
        await self._store.put(record)
        logger.info(
            "Authorized provider id %s with token %s",
            identity.provider_id,
            redact(record.access_token),
        )
        return AuthorizationResult(
            record=record,
            identity=identity,
            transport_token=encode_access_token(record.access_token),
            user=user,
        )

    async def _resolve_user(self, identity: ProviderIdentity) -> Optional[UserRecord]:
        if self._users is None:
            return None
        user = await self._users.find_by_provider_id(identity.provider_id)
        if user is not None:
            return user
        logger.info("Creating user for provider id %s", identity.provider_id)
        return await self._users.create_user(
            {
                "provider_id": identity.provider_id,
                "display_name": identity.display_name,
                "email": identity.email,
                "country": identity.country,
            }
        )

    async def authorize(self, transport_token: str) -> FreshnessResult:
        """Decode a client token and return fresh credentials for it."""
        access_token = decode_access_token(transport_token)
        return await self._orchestrator.ensure_fresh(access_token)


__all__ = [
    "AuthorizationFlowService",
    "AuthorizationResult",
    "AuthorizationStart",
]
