# tests/unit/cache/test_unit_expiry.py — v1
"""Tests for cache/expiry.py — expiry policy evaluation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from rfgbuild.cache.expiry import cache_enabled, is_expired
from rfgbuild.cache.models import CacheStats

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def stats():
    return CacheStats(
        path=Path("/cache/abc/response.json"),
        size=128,
        last_write_time=NOW - timedelta(seconds=100),
    )


class TestCacheEnabled:
    @pytest.mark.parametrize("policy", [True, 1, 0.5, 3600, lambda s: False])
    def test_enabled(self, policy):
        assert cache_enabled(policy) is True

    @pytest.mark.parametrize("policy", [False, None, 0, -1, 0.0])
    def test_disabled(self, policy):
        assert cache_enabled(policy) is False


class TestIsExpired:
    def test_true_never_expires(self, stats):
        assert is_expired(stats, True, now=NOW) is False

    def test_false_always_expires(self, stats):
        assert is_expired(stats, False, now=NOW) is True

    def test_ttl_not_elapsed(self, stats):
        assert is_expired(stats, 500, now=NOW) is False

    def test_ttl_elapsed(self, stats):
        assert is_expired(stats, 50, now=NOW) is True

    def test_non_positive_ttl_expires(self, stats):
        assert is_expired(stats, 0, now=NOW) is True
        assert is_expired(stats, -10, now=NOW) is True

    def test_callable_is_authoritative(self, stats):
        seen = []

        def policy(s):
            seen.append(s)
            return s.size > 100

        assert is_expired(stats, policy, now=NOW) is True
        assert seen == [stats]

    def test_callable_result_coerced(self, stats):
        assert is_expired(stats, lambda s: 0, now=NOW) is False
