"""Service layer exports."""

from .authorization import AuthorizationFlowService, AuthorizationResult, AuthorizationStart
from .credential_store import CredentialRecordStore, CredentialRepository
from .encryption import DecryptionError, SymmetricEncryptor, generate_secret
from .oauth_state import OAuthStateManager
from .token_refresh import CredentialState, FreshnessResult, TokenRefreshOrchestrator
from .transport_codec import decode_access_token, encode_access_token
from .ttl_cache import TTLCache

__all__ = [
    "AuthorizationFlowService",
    "AuthorizationResult",
    "AuthorizationStart",
    "CredentialRecordStore",
    "CredentialRepository",
    "CredentialState",
    "DecryptionError",
    "FreshnessResult",
    "OAuthStateManager",
    "SymmetricEncryptor",
    "TTLCache",
    "TokenRefreshOrchestrator",
    "decode_access_token",
    "encode_access_token",
    "generate_secret",
]
