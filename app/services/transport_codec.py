"""
Reversible encoding of access tokens for cookies and headers.

This keeps the raw bearer token out of transport fields. It is obfuscation
only and offers no confidentiality or integrity.
"""

from __future__ import annotations

import base64
import binascii

from app.services.errors import TokenMalformedError


def encode_access_token(access_token: str) -> str:
    """Encode an access token for placement in a cookie or header."""
    return base64.urlsafe_b64encode(access_token.encode("utf-8")).decode("ascii")


def decode_access_token(value: str) -> str:
    """Decode a transport value back into the access token."""
    if not value:
        raise TokenMalformedError("Empty token supplied.")
    try:
        raw = value.strip().encode("ascii")
        padded = raw + b"=" * (-len(raw) % 4)
        decoded = base64.b64decode(padded, altchars=b"-_", validate=True)
        access_token = decoded.decode("utf-8")
    except (UnicodeError, binascii.Error, ValueError) as exc:
        raise TokenMalformedError("Token is not a valid encoded value.") from exc
    if not access_token:
        raise TokenMalformedError("Token decodes to an empty value.")
    return access_token


__all__ = ["decode_access_token", "encode_access_token"]
