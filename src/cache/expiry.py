# src/cache/expiry.py — v1
"""Cache expiry policy evaluation.

Policies:
    False / None / 0 / negative number -> always expired (remote call every run)
    True or any other truthy non-number -> never expires
    positive number                     -> TTL in seconds since last write
    callable(CacheStats) -> bool        -> authoritative custom predicate
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from rfgbuild.cache.models import CacheEntry, CacheStats

logger = logging.getLogger(__name__)


def cache_enabled(policy: Any) -> bool:
    """Whether the policy allows reading or writing the cache at all."""
    if callable(policy):
        return True
    if isinstance(policy, (int, float)) and not isinstance(policy, bool):
        return policy > 0
    return bool(policy)


def is_expired(
    entry: CacheEntry | CacheStats,
    policy: Any,
    now: datetime | None = None,
) -> bool:
    """Decide whether a cache entry must be refreshed.

    Args:
        entry: Cache entry (or its stats) to evaluate.
        policy: Expiry policy, see module docstring.
        now: Reference time, defaults to the current UTC time.
    """
    stats = entry.stats if isinstance(entry, CacheEntry) else entry

    if callable(policy):
        return bool(policy(stats))

    if isinstance(policy, (int, float)) and not isinstance(policy, bool):
        if policy <= 0:
            return True
        current = now or datetime.now(timezone.utc)
        age = (current - stats.last_write_time).total_seconds()
        expired = age > policy
        logger.debug("Cache age %.1fs vs ttl %.1fs (expired=%s)", age, policy, expired)
        return expired

    return not policy
