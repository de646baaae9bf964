"""
Core library: infrastructure shared by the Game Services client.

Modules:
    auth        - Management API credentials (certificate, bearer token, azure-identity)
    resilience  - Fixed-backoff retry for HTTP sends
    logging     - Structured JSON/console logging with context propagation
    errors      - Error classification and exception hierarchy
"""

from .types import ErrorCategory, TokenProvider

__version__ = "0.1.0"

__all__ = [
    "ErrorCategory",
    "TokenProvider",
]
