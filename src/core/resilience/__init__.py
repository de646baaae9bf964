"""
Resilience patterns module.

Provides fault tolerance primitives for the management API transport.

Components:
    - RetryConfig: Fixed-delay retry configuration (immutable)
    - send_with_retry: Async retry loop over a single send function
    - fixed_delay / linear_delay: Pluggable delay strategies
"""

from .retry import (
    DEFAULT_RETRY,
    DelayStrategy,
    RetryConfig,
    fixed_delay,
    linear_delay,
    send_with_retry,
)

__all__ = [
    "RetryConfig",
    "DelayStrategy",
    "DEFAULT_RETRY",
    "fixed_delay",
    "linear_delay",
    "send_with_retry",
]
