"""Schemas related to OAuth flows."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class OAuthCallbackPayload(BaseModel):
    """Payload sent to complete the OAuth callback exchange."""

    code: str = Field(..., description="Authorization code returned by the provider.")
    state: str = Field(..., description="Opaque state token issued when starting OAuth.")


class AuthorizationUrlResponse(BaseModel):
    """Consent URL plus the state token embedded in it."""

    authorization_url: str
    state: str


class ConnectedResponse(BaseModel):
    """Result of a completed OAuth callback."""

    status: str = "connected"
    provider_id: str
    user_id: Optional[str] = None
    display_name: Optional[str] = None
    access_token: str = Field(..., description="Transport-encoded access token.")
    expires_at: datetime


class SessionResponse(BaseModel):
    """Credential state returned for an authorized request."""

    provider_id: str
    user_id: Optional[str] = None
    expires_at: datetime
    rotated: bool = False
    access_token: Optional[str] = Field(
        None, description="New transport-encoded token, present only after rotation."
    )


__all__ = [
    "AuthorizationUrlResponse",
    "ConnectedResponse",
    "OAuthCallbackPayload",
    "SessionResponse",
]
