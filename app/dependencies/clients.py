"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Each component owns its cache: the state manager and the credential store are
built with separate ``TTLCache`` instances.
"""

from functools import lru_cache

from app.clients import (
    DynamoDBCredentialRepository,
    OAuthProviderClient,
    SQLiteCredentialRepository,
    UserDirectoryClient,
)
from app.core.config import get_settings
from app.services import (
    AuthorizationFlowService,
    CredentialRecordStore,
    CredentialRepository,
    OAuthStateManager,
    SymmetricEncryptor,
    TokenRefreshOrchestrator,
    TTLCache,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_oauth_provider_client() -> OAuthProviderClient:
    """Create a singleton OAuth provider client."""
    return OAuthProviderClient(_settings().provider)


@lru_cache()
def get_user_directory_client() -> UserDirectoryClient | None:
    """Provide the user directory client when one is configured."""
    settings = _settings().user_directory
    if settings.base_url is None:
        return None
    return UserDirectoryClient(settings)


@lru_cache()
def get_credential_repository() -> CredentialRepository:
    """Provide the durable credential repository for the configured backend."""
    storage = _settings().storage
    if storage.backend == "dynamodb":
        return DynamoDBCredentialRepository(storage)
    return SQLiteCredentialRepository(storage.db_path)


@lru_cache()
def get_symmetric_encryptor() -> SymmetricEncryptor:
    return SymmetricEncryptor()


@lru_cache()
def get_oauth_state_manager() -> OAuthStateManager:
    """Provide the state manager together with its private state cache."""
    return OAuthStateManager(
        TTLCache(max_entries=_settings().cache.state_cache_max_entries),
        get_symmetric_encryptor(),
        ttl_unit=_settings().cache.state_cache_time_unit,
    )


@lru_cache()
def get_credential_store() -> CredentialRecordStore:
    """Provide the credential store together with its private token cache."""
    return CredentialRecordStore(
        get_credential_repository(),
        TTLCache(max_entries=_settings().cache.token_cache_max_entries),
        ttl_unit=_settings().cache.token_cache_time_unit,
    )


@lru_cache()
def get_token_refresh_orchestrator() -> TokenRefreshOrchestrator:
    """Provide helper for rotating stale credentials."""
    return TokenRefreshOrchestrator(
        get_credential_store(),
        get_oauth_provider_client(),
        leeway_seconds=_settings().cache.refresh_leeway_seconds,
    )


def get_authorization_service() -> AuthorizationFlowService:
    """Build the authorization flow service from the shared components."""
    return AuthorizationFlowService(
        state_manager=get_oauth_state_manager(),
        oauth_client=get_oauth_provider_client(),
        store=get_credential_store(),
        orchestrator=get_token_refresh_orchestrator(),
        user_directory=get_user_directory_client(),
    )


__all__ = [
    "get_authorization_service",
    "get_credential_repository",
    "get_credential_store",
    "get_oauth_provider_client",
    "get_oauth_state_manager",
    "get_symmetric_encryptor",
    "get_token_refresh_orchestrator",
    "get_user_directory_client",
]
