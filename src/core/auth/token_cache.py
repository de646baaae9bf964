"""
Thread-safe token cache with expiration tracking.

Caches bearer tokens per scope. A token is handed out only while it is
comfortably inside its lifetime, so a request never starts with a token that
could expire before the management endpoint sees it.

Thread Safety:
    All cache operations are protected by a lock. Token acquisition for
    azure-identity credentials runs in worker threads, so the cache may be
    touched from several threads at once.

Example:
    >>> cache = TokenCache()
    >>> cache.set("https://management.core.windows.net/.default", "eyJ0eXAi...")
    >>> token = cache.get("https://management.core.windows.net/.default")
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

# Token timing constants
TOKEN_REFRESH_MINS = 50  # Refresh before expiry (Azure tokens: 60 min lifetime)
TOKEN_EXPIRY_MINS = 60  # Azure token lifetime
TOKEN_EXPIRY_BUFFER_SECS = 300  # Treat tokens as expired this long before expires_on


@dataclass
class CachedToken:
    """
    Token with acquisition timestamp for expiration tracking.

    Attributes:
        value: The access token string
        acquired_at: UTC timestamp when token was cached
        expires_on: UTC expiry reported by the issuer, when known
    """

    value: str
    acquired_at: datetime
    expires_on: Optional[datetime] = None

    def is_valid(self, buffer_mins: int = TOKEN_REFRESH_MINS) -> bool:
        """
        Check if token is still valid with safety buffer.

        With a known expiry the token is valid until TOKEN_EXPIRY_BUFFER_SECS
        before it. Without one, the token is valid while younger than
        ``buffer_mins``.
        """
        now = datetime.now(timezone.utc)
        if self.expires_on is not None:
            return now < self.expires_on - timedelta(seconds=TOKEN_EXPIRY_BUFFER_SECS)
        return now - self.acquired_at < timedelta(minutes=buffer_mins)


class TokenCache:
    """
    Thread-safe cache for authentication tokens, keyed by scope.

    Example:
        >>> cache = TokenCache()
        >>> cache.set(scope, token, expires_on=1767225600)
        >>> cache.get(scope)  # token while fresh, None once close to expiry
    """

    def __init__(self):
        self._tokens: Dict[str, CachedToken] = {}
        self._lock = threading.Lock()

    def get(self, scope: str) -> Optional[str]:
        """Return the cached token for ``scope`` if still valid, else None."""
        with self._lock:
            cached = self._tokens.get(scope)
            if cached and cached.is_valid():
                return cached.value
            return None

    def set(self, scope: str, token: str, expires_on: Optional[int] = None) -> None:
        """
        Cache a token with the current timestamp.

        Args:
            scope: Scope the token was issued for
            token: Access token string
            expires_on: Expiry as a POSIX timestamp, as reported by azure-identity
        """
        expiry = (
            datetime.fromtimestamp(expires_on, tz=timezone.utc)
            if expires_on is not None
            else None
        )
        with self._lock:
            self._tokens[scope] = CachedToken(
                value=token,
                acquired_at=datetime.now(timezone.utc),
                expires_on=expiry,
            )

    def clear(self, scope: Optional[str] = None) -> None:
        """Clear one scope, or every cached token when ``scope`` is None."""
        with self._lock:
            if scope:
                self._tokens.pop(scope, None)
            else:
                self._tokens.clear()

    def get_age(self, scope: str) -> Optional[timedelta]:
        """Age of the cached token for diagnostics, or None if not cached."""
        with self._lock:
            cached = self._tokens.get(scope)
            if cached:
                return datetime.now(timezone.utc) - cached.acquired_at
            return None


__all__ = [
    "TokenCache",
    "CachedToken",
    "TOKEN_REFRESH_MINS",
    "TOKEN_EXPIRY_MINS",
    "TOKEN_EXPIRY_BUFFER_SECS",
]
