"""
Retry utilities for management API requests.

The management endpoint expects a plain fixed pause between attempts, so the
default strategy does no exponential growth and no jitter:
- 2xx / 4xx responses: returned immediately
- 5xx responses: released and retried after the configured delay
- Transient transport failures: retried the same way
- Last attempt: the response is returned as-is, a transport failure is raised
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from core.errors.exceptions import (
    GameServicesError,
    TransportError,
    classify_exception,
    wrap_exception,
)
from core.types import ErrorCategory

logger = logging.getLogger(__name__)

R = TypeVar("R")

# (attempt, delay_ms) -> seconds to wait before the next attempt
DelayStrategy = Callable[[int, int], float]


def fixed_delay(attempt: int, delay_ms: int) -> float:
    """Wait the same amount of time before every retry."""
    return delay_ms / 1000.0


def linear_delay(attempt: int, delay_ms: int) -> float:
    """Wait delay_ms times the attempt number."""
    return (delay_ms * attempt) / 1000.0


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior. Immutable once built."""

    max_tries: int = 3
    delay_ms: int = 600
    strategy: DelayStrategy = field(default=fixed_delay, compare=False)

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        object.__setattr__(self, "max_tries", int(self.max_tries))
        object.__setattr__(self, "delay_ms", int(self.delay_ms))
        if self.max_tries < 1:
            raise ValueError(f"max_tries must be at least 1, got {self.max_tries}")
        if self.delay_ms < 0:
            raise ValueError(f"delay_ms must not be negative, got {self.delay_ms}")

    def get_delay(self, attempt: int) -> float:
        """
        Delay before the attempt following ``attempt``.

        Args:
            attempt: 1-indexed number of the attempt that just failed

        Returns:
            Delay in seconds
        """
        return max(0.0, float(self.strategy(attempt, self.delay_ms)))

    def should_retry(self, status_code: int, attempt: int) -> bool:
        """Only server errors on a non-final attempt are retried."""
        if attempt >= self.max_tries:
            return False
        return status_code >= 500

    @property
    def worst_case_delay(self) -> float:
        """Total time spent waiting if every attempt fails."""
        return sum(self.get_delay(attempt) for attempt in range(1, self.max_tries))


DEFAULT_RETRY = RetryConfig()


def _log_retry_attempt(
    operation: str,
    attempt: int,
    config: RetryConfig,
    delay: float,
    status_code: int | None,
    error: Exception | None,
    log: Callable[[str], None] | None,
) -> None:
    """Emit the retry-attempt warning to the logger and the caller's sink."""
    message = f"Request attempt #{attempt} will be retried due to a bad response"
    log_extras: dict[str, Any] = {
        "operation": operation,
        "attempt": attempt,
        "max_attempts": config.max_tries,
        "delay_seconds": round(delay, 3),
    }
    if status_code is not None:
        log_extras["status_code"] = status_code
    if error is not None:
        log_extras["error_type"] = type(error).__name__
        log_extras["error_message"] = str(error)[:200]

    logger.warning(message, extra=log_extras)
    if log is not None:
        log(message)


async def send_with_retry(
    send: Callable[[], Awaitable[R]],
    config: RetryConfig | None = None,
    *,
    status_of: Callable[[R], int] = lambda response: response.status,
    release: Callable[[R], Any] | None = None,
    operation: str = "http_request",
    log: Callable[[str], None] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> R:
    """
    Call ``send`` until it produces a response worth returning.

    Args:
        send: Zero-argument coroutine factory issuing one attempt
        config: Retry configuration (defaults to DEFAULT_RETRY)
        status_of: Extracts the HTTP status from a response
        release: Called on every response that is discarded before a retry
        operation: Name used in log records
        log: Optional caller log sink receiving the human-readable retry lines
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        The first 2xx/4xx response, or the last response once attempts run out

    Raises:
        TransportError: Every attempt failed at the network level, or the last
            one did. Carries the last HTTP status seen, if any.
    """
    if config is None:
        config = DEFAULT_RETRY

    last_status: int | None = None

    for attempt in range(1, config.max_tries + 1):
        try:
            response = await send()
        except Exception as e:
            if classify_exception(e) != ErrorCategory.TRANSIENT:
                raise

            if attempt >= config.max_tries:
                wrapped = wrap_exception(
                    e,
                    status_code=last_status,
                    attempts=attempt,
                    context={"operation": operation},
                )
                if not isinstance(wrapped, TransportError):
                    wrapped = TransportError(
                        str(e) or type(e).__name__,
                        status_code=last_status,
                        attempts=attempt,
                        cause=e,
                    )
                logger.error(
                    "Max retries exhausted for %s: %s",
                    operation,
                    str(e)[:200],
                    extra={
                        "operation": operation,
                        "error_type": type(e).__name__,
                        "error_category": ErrorCategory.TRANSIENT.value,
                        "max_attempts": config.max_tries,
                        "status_code": last_status,
                    },
                )
                raise wrapped from e

            delay = config.get_delay(attempt)
            _log_retry_attempt(operation, attempt, config, delay, last_status, e, log)
            await sleep(delay)
            continue

        status = status_of(response)
        last_status = status

        if not config.should_retry(status, attempt):
            if attempt > 1 and status < 500:
                logger.info(
                    "Retry succeeded for %s after %d attempts",
                    operation,
                    attempt,
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "total_attempts": config.max_tries,
                        "status_code": status,
                    },
                )
            return response

        if release is not None:
            release(response)

        delay = config.get_delay(attempt)
        _log_retry_attempt(operation, attempt, config, delay, status, None, log)
        await sleep(delay)

    # max_tries >= 1 guarantees the loop returns or raises
    raise GameServicesError(f"Retry loop for {operation} exited without a result")


__all__ = [
    "DelayStrategy",
    "RetryConfig",
    "DEFAULT_RETRY",
    "fixed_delay",
    "linear_delay",
    "send_with_retry",
]
