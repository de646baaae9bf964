"""Context managers for structured logging."""

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Optional

from core.logging.context import get_log_context, set_log_context
from core.logging.utilities import log_exception, log_with_context


class LogContext:
    """
    Context manager for temporary log context.

    Usage:
        with LogContext(operation="get_cloud_games", correlation_id=cid):
            # All logs in this block carry operation and correlation_id
            await client.get_cloud_games()
    """

    def __init__(
        self,
        operation: Optional[str] = None,
        subscription_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        self.new_context = {
            "operation": operation,
            "subscription_id": subscription_id,
            "correlation_id": correlation_id,
            "request_id": request_id,
        }
        self.old_context: Dict[str, str] = {}

    def __enter__(self) -> "LogContext":
        self.old_context = get_log_context()
        for key, value in self.new_context.items():
            if value is not None:
                set_log_context(**{key: value})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        set_log_context(
            operation=self.old_context.get("operation", ""),
            subscription_id=self.old_context.get("subscription_id", ""),
            correlation_id=self.old_context.get("correlation_id", ""),
            request_id=self.old_context.get("request_id", ""),
        )
        return False


@contextmanager
def log_phase(
    logger: logging.Logger,
    phase: str,
    level: int = logging.DEBUG,
    **context: Any,
):
    """
    Context manager for timing a phase within an operation.

    Args:
        logger: Logger instance
        phase: Phase name
        level: Log level for completion message
        **context: Additional context fields

    Example:
        with log_phase(logger, "resolve_orphans", items_count=3):
            await asyncio.gather(*fetches)
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    start = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        log_with_context(
            logger,
            level,
            f"Phase complete: {phase}",
            duration_ms=round(duration_ms, 2),
            **context,
        )


class OperationContext:
    """Context manager for timed client operations with automatic logging."""

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        level: int = logging.DEBUG,
        slow_threshold_ms: Optional[float] = 5000.0,
        log_start: bool = False,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        if isinstance(level, str):
            self.level = getattr(logging, level.upper(), logging.DEBUG)
        else:
            self.level = level
        self.slow_threshold_ms = slow_threshold_ms
        self.log_start = log_start
        self.context = context
        self._start_time: Optional[float] = None
        self._log_context = LogContext(operation=operation)

    def __enter__(self) -> "OperationContext":
        self._log_context.__enter__()
        self._start_time = time.perf_counter()
        if self.log_start:
            log_with_context(
                self.logger,
                logging.DEBUG,
                f"Starting: {self.operation}",
                operation=self.operation,
                **self.context,
            )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = (time.perf_counter() - self._start_time) * 1000

        # Auto-promote to INFO if slow
        effective_level = self.level
        if self.slow_threshold_ms and duration_ms > self.slow_threshold_ms:
            effective_level = max(self.level, logging.INFO)

        try:
            if isinstance(exc_val, Exception):
                log_exception(
                    self.logger,
                    exc_val,
                    f"Failed: {self.operation}",
                    include_traceback=False,
                    duration_ms=round(duration_ms, 2),
                    operation=self.operation,
                    **self.context,
                )
            elif exc_val is None:
                log_with_context(
                    self.logger,
                    effective_level,
                    f"Completed: {self.operation}",
                    duration_ms=round(duration_ms, 2),
                    operation=self.operation,
                    **self.context,
                )
        finally:
            self._log_context.__exit__(exc_type, exc_val, exc_tb)
        return False

    def add_context(self, **kwargs: Any) -> None:
        """Add context mid-operation (item counts, etc)."""
        self.context.update(kwargs)


@contextmanager
def log_operation(
    logger: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    slow_threshold_ms: Optional[float] = 5000.0,
    **context: Any,
):
    """Convenience context manager for ad-hoc operation logging."""
    with OperationContext(
        logger, operation, level=level, slow_threshold_ms=slow_threshold_ms, **context
    ) as ctx:
        yield ctx
