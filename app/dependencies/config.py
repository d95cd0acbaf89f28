"""
FastAPI dependency utilities for configuration and request-scoped credentials.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request

from app.core.config import AppSettings, get_settings

_BEARER_PREFIX = "bearer "


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


SettingsDependency = Depends(get_app_settings)


def get_transport_token(
    request: Request, settings: AppSettings = SettingsDependency
) -> Optional[str]:
    """Read the encoded access token from the bearer header or session cookie."""
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith(_BEARER_PREFIX):
        token = authorization[len(_BEARER_PREFIX):].strip()
        if token:
            return token
    return request.cookies.get(settings.session_cookie_name) or None


__all__ = ["SettingsDependency", "get_app_settings", "get_transport_token"]
