"""
Typed failures raised by the credential lifecycle services.

None of these are retried inside the services; callers decide how to surface
them.
"""

from __future__ import annotations


class StateError(Exception):
    """Base class for OAuth state validation failures."""


class StateUnrecognizedError(StateError):
    """The state token is unknown, already used, expired or fails validation."""


class TokenError(Exception):
    """Base class for transport token failures."""


class TokenMalformedError(TokenError):
    """The client supplied a token that cannot be decoded."""


class StoreError(Exception):
    """Base class for credential storage failures."""


class StorePersistError(StoreError):
    """The durable write failed; nothing was cached."""


class CredentialNotFoundError(StoreError):
    """No credential record exists for the supplied access token."""


class CredentialSupersededError(CredentialNotFoundError):
    """A newer credential exists for the same identity; the old one cannot be refreshed."""


class RefreshError(Exception):
    """Base class for credential refresh failures."""


class RefreshProviderRejectedError(RefreshError):
    """The provider refused the refresh token; the user must authorize again."""


class RefreshStoreFailedError(RefreshError):
    """
    The provider rotated the token but the new record could not be persisted.

    The provider-side token is orphaned and needs operator attention.
    """

    def __init__(self, message: str, *, provider_id: str | None = None) -> None:
        super().__init__(message)
        self.provider_id = provider_id


__all__ = [
    "CredentialNotFoundError",
    "CredentialSupersededError",
    "RefreshError",
    "RefreshProviderRejectedError",
    "RefreshStoreFailedError",
    "StateError",
    "StateUnrecognizedError",
    "StoreError",
    "StorePersistError",
    "TokenError",
    "TokenMalformedError",
]
