"""
Authentication module.

Provides the management credentials applied to every request.

Components:
    - TokenCache: Thread-safe token caching with expiry checks
    - ManagementCredential: certificate, static bearer token and
      azure-identity implementations
    - credential_from_config: resolves a credential once from configuration
"""

from .credentials import (
    AUTHORIZATION_HEADER,
    MANAGEMENT_RESOURCE,
    MANAGEMENT_SCOPE,
    AccessTokenCredential,
    AzureIdentityCredential,
    CertificateCredential,
    ManagementCredential,
    credential_from_config,
)
from .token_cache import TOKEN_EXPIRY_MINS, TOKEN_REFRESH_MINS, CachedToken, TokenCache

__all__ = [
    # Token cache
    "TokenCache",
    "CachedToken",
    "TOKEN_REFRESH_MINS",
    "TOKEN_EXPIRY_MINS",
    # Credentials
    "ManagementCredential",
    "CertificateCredential",
    "AccessTokenCredential",
    "AzureIdentityCredential",
    "credential_from_config",
    "MANAGEMENT_RESOURCE",
    "MANAGEMENT_SCOPE",
    "AUTHORIZATION_HEADER",
]
