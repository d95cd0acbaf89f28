"""Expose constructed client wrappers."""

from .dynamodb import DynamoDBCredentialRepository
from .oauth_provider import OAuthIdentityError, OAuthProviderClient, OAuthTokenExchangeError
from .sqlite_store import SQLiteCredentialRepository
from .user_directory import UserDirectoryClient, UserDirectoryError

__all__ = [
    "DynamoDBCredentialRepository",
    "OAuthIdentityError",
    "OAuthProviderClient",
    "OAuthTokenExchangeError",
    "SQLiteCredentialRepository",
    "UserDirectoryClient",
    "UserDirectoryError",
]
