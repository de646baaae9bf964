"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- GameServicesError hierarchy for typed exceptions
- Classification utilities for error handling
"""

from core.errors.exceptions import (
    # Base classes
    CredentialError,
    # Enums
    ErrorCategory,
    GameServicesError,
    MissingRequestIdError,
    OperationFailedError,
    PermanentError,
    ProtocolError,
    ResourceStateError,
    ResponseDecodeError,
    ServiceResponseError,
    TransientError,
    TransportError,
    UnexpectedStatusError,
    UnknownPlatformError,
    # Classification utilities
    classify_exception,
    classify_http_status,
    wrap_exception,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "GameServicesError",
    "TransientError",
    "PermanentError",
    # Concrete errors
    "CredentialError",
    "TransportError",
    "ProtocolError",
    "MissingRequestIdError",
    "UnexpectedStatusError",
    "OperationFailedError",
    "ResponseDecodeError",
    "ServiceResponseError",
    "UnknownPlatformError",
    "ResourceStateError",
    # Classification utilities
    "classify_http_status",
    "classify_exception",
    "wrap_exception",
]
