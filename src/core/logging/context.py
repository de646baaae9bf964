"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_operation: ContextVar[str] = ContextVar("operation", default="")
_subscription_id: ContextVar[str] = ContextVar("subscription_id", default="")
_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")
_request_id: ContextVar[str] = ContextVar("request_id", default="")


def set_log_context(
    operation: Optional[str] = None,
    subscription_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> None:
    if operation is not None:
        _operation.set(operation)
    if subscription_id is not None:
        _subscription_id.set(subscription_id)
    if correlation_id is not None:
        _correlation_id.set(correlation_id)
    if request_id is not None:
        _request_id.set(request_id)


def get_log_context() -> Dict[str, str]:
    return {
        "operation": _operation.get(),
        "subscription_id": _subscription_id.get(),
        "correlation_id": _correlation_id.get(),
        "request_id": _request_id.get(),
    }


def clear_log_context() -> None:
    _operation.set("")
    _subscription_id.set("")
    _correlation_id.set("")
    _request_id.set("")
