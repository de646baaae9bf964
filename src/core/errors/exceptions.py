"""
Unified exception hierarchy for the Game Services client.

Provides typed exceptions with category classification so callers can tell
transport trouble, protocol violations, remote operation failures and plain
HTTP errors apart without string matching.
"""

import asyncio
from http import HTTPStatus

import aiohttp

# Import ErrorCategory from canonical source to avoid duplicate enum issues
# (comparing enums from different classes always returns False)
from core.types import ErrorCategory


class GameServicesError(Exception):
    """
    Base exception for all client errors.

    Attributes:
        message: Human-readable error description
        category: Error classification
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.category in (
            ErrorCategory.TRANSIENT,
            ErrorCategory.UNKNOWN,
        )

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Authentication Errors
# =============================================================================


class CredentialError(GameServicesError):
    """A credential could not be loaded or applied to a request."""

    category = ErrorCategory.AUTH


# =============================================================================
# Transport Errors (Transient)
# =============================================================================


class TransientError(GameServicesError):
    """Base class for transient errors."""

    category = ErrorCategory.TRANSIENT


class TransportError(TransientError):
    """Network-level failure, or every send attempt was used up."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        attempts: int | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.status_code = status_code
        self.attempts = attempts


# =============================================================================
# Permanent Errors
# =============================================================================


class PermanentError(GameServicesError):
    """Base class for non-retriable errors."""

    category = ErrorCategory.PERMANENT


class ProtocolError(PermanentError):
    """The server reply broke the asynchronous operation contract."""


class MissingRequestIdError(ProtocolError):
    """An accepted response carried no request-id header to poll with."""

    def __init__(self, header_name: str):
        super().__init__(
            f"No request ID header '{header_name}' found in initial response",
            context={"header": header_name},
        )
        self.header_name = header_name


class UnexpectedStatusError(ProtocolError):
    """An operation expected to be accepted (202) answered something else."""

    def __init__(self, status_code: int, expected: int = HTTPStatus.ACCEPTED):
        super().__init__(
            f"Unexpected status code {status_code}. Should be {int(expected)} {HTTPStatus(expected).phrase}.",
            context={"status_code": status_code},
        )
        self.status_code = status_code
        self.expected = int(expected)


class OperationFailedError(PermanentError):
    """A long-running operation reached the Failed state."""

    def __init__(
        self,
        code: str | None,
        message: str | None,
        http_status_code: int | None = None,
        request_id: str | None = None,
    ):
        super().__init__(
            _http_error_string(http_status_code, message),
            context={"error_code": code, "request_id": request_id},
        )
        self.code = code
        self.error_message = message
        self.http_status_code = http_status_code
        self.request_id = request_id


class ResponseDecodeError(PermanentError):
    """A successful response body could not be decoded into the expected type."""

    def __init__(self, message: str, status_code: int, cause: Exception | None = None):
        super().__init__(message, cause, {"status_code": status_code})
        self.status_code = status_code


class UnknownPlatformError(PermanentError):
    """A resource type string does not map to a known cloud game platform."""

    def __init__(self, resource_type: str):
        super().__init__(
            f"Unknown cloud game platform resource type: {resource_type}",
            context={"resource_type": resource_type},
        )
        self.resource_type = resource_type


class ResourceStateError(PermanentError):
    """The resource is in a state that does not allow the requested change."""


# =============================================================================
# HTTP Response Errors
# =============================================================================


class ServiceResponseError(GameServicesError):
    """
    Non-success HTTP reply from the management service.

    The category follows the status code, so a 503 that outlived the retry
    loop is transient while a 400 is permanent.
    """

    def __init__(
        self,
        status_code: int | None,
        error_message: str = "",
        error_code: str | None = None,
        context: dict | None = None,
    ):
        super().__init__(_http_error_string(status_code, error_message), context=context)
        self.status_code = status_code
        self.error_message = error_message
        self.error_code = error_code
        if status_code is not None:
            self.category = classify_http_status(status_code)


def _http_error_string(status_code: int | None, message: str | None) -> str:
    parts = ["HTTP Error"]
    if status_code is not None:
        parts.append(f" {status_code}")
        try:
            parts.append(f" {HTTPStatus(status_code).phrase}")
        except ValueError:
            pass
    if message:
        parts.append(f": {message}")
    return "".join(parts)


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_http_status(status_code: int) -> ErrorCategory:
    """Classify HTTP status code into error category."""
    if 200 <= status_code < 300:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code == 401:
        return ErrorCategory.AUTH

    if status_code == 429:
        return ErrorCategory.TRANSIENT

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT

    if status_code >= 500:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


def classify_exception(exc: Exception) -> ErrorCategory:
    """Classify an exception into error category."""
    if isinstance(exc, GameServicesError):
        return exc.category

    # Certificate failures come wrapped in ClientError subclasses
    if isinstance(exc, aiohttp.ClientSSLError):
        return ErrorCategory.AUTH

    if isinstance(exc, (aiohttp.ClientError, asyncio.TimeoutError)):
        return ErrorCategory.TRANSIENT

    exc_type = type(exc).__name__.lower()
    exc_str = str(exc).lower()

    connection_markers = (
        "connectionerror",
        "connection refused",
        "connection reset",
        "connection aborted",
        "serverdisconnected",
        "no route to host",
        "network unreachable",
        "name resolution",
        "dns",
        "socket",
        "broken pipe",
    )
    if any(m in exc_type or m in exc_str for m in connection_markers):
        return ErrorCategory.TRANSIENT

    if "timeout" in exc_type or "timeout" in exc_str:
        return ErrorCategory.TRANSIENT

    if "ssl" in exc_type or "certificate" in exc_str:
        return ErrorCategory.AUTH

    if isinstance(exc, OSError):
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


def wrap_exception(
    exc: Exception,
    status_code: int | None = None,
    attempts: int | None = None,
    context: dict | None = None,
) -> GameServicesError:
    """Wrap a third-party exception in the matching GameServicesError subclass."""
    if isinstance(exc, GameServicesError):
        if context:
            exc.context.update(context)
        return exc

    category = classify_exception(exc)
    context = context or {}
    context["error_type"] = type(exc).__name__

    if category == ErrorCategory.AUTH:
        return CredentialError(str(exc) or type(exc).__name__, cause=exc, context=context)

    if category == ErrorCategory.TRANSIENT:
        return TransportError(
            str(exc) or type(exc).__name__,
            status_code=status_code,
            attempts=attempts,
            cause=exc,
            context=context,
        )

    return GameServicesError(str(exc) or type(exc).__name__, cause=exc, context=context)
