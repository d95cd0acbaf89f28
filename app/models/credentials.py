"""
Domain models for OAuth credential persistence and the state handshake.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialRecord(BaseModel):
    """An access/refresh token pair tied to a provider identity."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    expires_at: datetime
    provider_id: str
    user_id: Optional[str] = Field(
        None, description="Absent until the user directory has resolved the identity."
    )
    created_at: datetime = Field(default_factory=_utcnow)


class StateEntry(BaseModel):
    """Cached secret material for one outstanding OAuth state token."""

    model_config = ConfigDict(frozen=True)

    plain_state: str
    password: str


class ProviderTokens(BaseModel):
    """Token endpoint response. ``refresh_token`` is optional on refresh."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int = Field(..., gt=0)
    scope: Optional[str] = None
    token_type: Optional[str] = None


class ProviderIdentity(BaseModel):
    """Profile returned by the provider for the authorized user."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    provider_id: str = Field(..., alias="id")
    display_name: Optional[str] = None
    email: Optional[str] = None
    country: Optional[str] = None


class UserRecord(BaseModel):
    """User as returned by the user directory service."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    user_id: str = Field(..., validation_alias=AliasChoices("user_id", "_id", "id"))
    provider_id: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None


__all__ = [
    "CredentialRecord",
    "ProviderIdentity",
    "ProviderTokens",
    "StateEntry",
    "UserRecord",
]
