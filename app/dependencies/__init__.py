"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_authorization_service,
    get_credential_repository,
    get_credential_store,
    get_oauth_provider_client,
    get_oauth_state_manager,
    get_symmetric_encryptor,
    get_token_refresh_orchestrator,
    get_user_directory_client,
)
from .config import SettingsDependency, get_app_settings, get_transport_token

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_authorization_service",
    "get_credential_repository",
    "get_credential_store",
    "get_oauth_provider_client",
    "get_oauth_state_manager",
    "get_symmetric_encryptor",
    "get_token_refresh_orchestrator",
    "get_transport_token",
    "get_user_directory_client",
]
