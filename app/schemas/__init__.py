"""Public schema exports."""

from .auth import (
    AuthorizationUrlResponse,
    ConnectedResponse,
    OAuthCallbackPayload,
    SessionResponse,
)

__all__ = [
    "AuthorizationUrlResponse",
    "ConnectedResponse",
    "OAuthCallbackPayload",
    "SessionResponse",
]
