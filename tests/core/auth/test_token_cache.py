"""
Tests for TokenCache - thread-safe token caching with expiration.

Test Coverage:
    - Basic cache operations (get/set/clear)
    - Age-based and issuer-reported expiry
    - Thread safety with concurrent access
    - Diagnostics (get_age)
"""

import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from core.auth.token_cache import (
    TOKEN_EXPIRY_BUFFER_SECS,
    TOKEN_EXPIRY_MINS,
    TOKEN_REFRESH_MINS,
    CachedToken,
    TokenCache,
)

SCOPE = "https://management.core.windows.net/.default"
OTHER_SCOPE = "https://management.azure.com/.default"


class TestCachedToken:
    """Tests for CachedToken dataclass."""

    def test_is_valid_fresh_token(self):
        token = CachedToken("test_token", datetime.now(timezone.utc))
        assert token.is_valid(buffer_mins=50)

    def test_is_valid_expired_token(self):
        old_time = datetime.now(timezone.utc) - timedelta(minutes=51)
        token = CachedToken("test_token", old_time)
        assert not token.is_valid(buffer_mins=50)

    def test_is_valid_custom_buffer(self):
        old_time = datetime.now(timezone.utc) - timedelta(minutes=31)
        token = CachedToken("test_token", old_time)
        assert not token.is_valid(buffer_mins=30)
        assert token.is_valid(buffer_mins=40)

    def test_known_expiry_wins_over_age(self):
        """An old token is still valid when the issuer says it lives longer."""
        now = datetime.now(timezone.utc)
        token = CachedToken(
            "test_token",
            acquired_at=now - timedelta(minutes=55),
            expires_on=now + timedelta(minutes=30),
        )
        assert token.is_valid()

    def test_expiry_buffer(self):
        now = datetime.now(timezone.utc)
        token = CachedToken(
            "test_token",
            acquired_at=now,
            expires_on=now + timedelta(seconds=TOKEN_EXPIRY_BUFFER_SECS - 10),
        )
        assert not token.is_valid()


class TestTokenCache:
    """Tests for TokenCache class."""

    @pytest.fixture
    def cache(self):
        return TokenCache()

    def test_init_empty_cache(self, cache):
        assert cache.get(SCOPE) is None

    def test_set_and_get_token(self, cache):
        cache.set(SCOPE, "eyJ0eXAiOiJKV1QiLCJhbGc...")
        assert cache.get(SCOPE) == "eyJ0eXAiOiJKV1QiLCJhbGc..."

    def test_scopes_are_independent(self, cache):
        cache.set(SCOPE, "classic")
        cache.set(OTHER_SCOPE, "arm")
        assert cache.get(SCOPE) == "classic"
        assert cache.get(OTHER_SCOPE) == "arm"

    def test_overwrite_existing_token(self, cache):
        cache.set(SCOPE, "old_token")
        cache.set(SCOPE, "new_token")
        assert cache.get(SCOPE) == "new_token"

    def test_expired_token_returns_none(self, cache):
        old_time = datetime.now(timezone.utc) - timedelta(minutes=51)
        with patch("core.auth.token_cache.datetime") as mock_dt:
            mock_dt.now.return_value = old_time
            cache.set(SCOPE, "old_token")

        assert cache.get(SCOPE) is None

    def test_expires_on_timestamp(self, cache):
        soon = int(time.time()) + 60
        cache.set(SCOPE, "short_lived", expires_on=soon)
        # Inside the expiry buffer, so never handed out
        assert cache.get(SCOPE) is None

        later = int(time.time()) + 3600
        cache.set(SCOPE, "long_lived", expires_on=later)
        assert cache.get(SCOPE) == "long_lived"

    def test_clear_specific_scope(self, cache):
        cache.set(SCOPE, "token1")
        cache.set(OTHER_SCOPE, "token2")

        cache.clear(SCOPE)

        assert cache.get(SCOPE) is None
        assert cache.get(OTHER_SCOPE) == "token2"

    def test_clear_all(self, cache):
        cache.set(SCOPE, "token1")
        cache.set(OTHER_SCOPE, "token2")

        cache.clear()

        assert cache.get(SCOPE) is None
        assert cache.get(OTHER_SCOPE) is None

    def test_clear_nonexistent_scope(self, cache):
        cache.clear("https://nonexistent.com/.default")

    def test_get_age_cached_token(self, cache):
        cache.set(SCOPE, "test_token")
        time.sleep(0.1)

        age = cache.get_age(SCOPE)
        assert age is not None
        assert 0 < age.total_seconds() < 1

    def test_get_age_missing_token(self, cache):
        assert cache.get_age(SCOPE) is None


class TestTokenCacheThreadSafety:
    """Tests for thread safety of TokenCache."""

    @pytest.fixture
    def cache(self):
        return TokenCache()

    def test_concurrent_set_operations(self, cache):
        errors = []

        def set_token(i):
            try:
                cache.set(f"https://resource{i}.com/.default", f"token_{i}")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=set_token, args=(i,)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        for i in range(10):
            assert cache.get(f"https://resource{i}.com/.default") == f"token_{i}"

    def test_concurrent_mixed_operations(self, cache):
        cache.set(SCOPE, "initial_token")
        errors = []

        def mixed_operations(op_type):
            try:
                if op_type == "get":
                    cache.get(SCOPE)
                elif op_type == "set":
                    cache.set(SCOPE, "token")
                else:
                    cache.clear(SCOPE)
            except Exception as e:
                errors.append(e)

        ops = ["get"] * 10 + ["set"] * 5 + ["clear"] * 2
        threads = [threading.Thread(target=mixed_operations, args=(op,)) for op in ops]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []


class TestTokenCacheConstants:
    def test_refresh_buffer_correct(self):
        assert TOKEN_REFRESH_MINS == 50
        assert TOKEN_EXPIRY_MINS == 60
        assert TOKEN_REFRESH_MINS < TOKEN_EXPIRY_MINS
