"""
Core types and protocols used across modules.

This module provides base types, enums, and protocol definitions that are
shared across the core library to ensure consistency and type safety.
"""

from enum import Enum
from typing import Protocol


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that may succeed later
                   (e.g., connection resets, 5xx responses)
        AUTH: Authentication failures requiring new credentials
              (e.g., 401 responses, expired tokens)
        PERMANENT: Failures that won't succeed on retry
                   (e.g., 400/404 responses, protocol violations)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class TokenProvider(Protocol):
    """
    Protocol for bearer token providers.

    Implementations return an access token string for the management API.
    """

    async def get_token(self, scopes: str | None = None) -> str:
        """
        Get an access token for the given scope (the default scope when None).

        Raises:
            CredentialError: If token acquisition fails
        """
        ...


__all__ = [
    "ErrorCategory",
    "TokenProvider",
]
