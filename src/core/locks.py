# src/core/locks.py — v1
"""Process-wide asyncio locks keyed by resource.

Every store or reconciler pointing at the same directory gets the same lock,
whichever object asks for it. Registries are kept per event loop, since an
``asyncio.Lock`` cannot be shared between loops.
"""

from __future__ import annotations

import asyncio
import weakref
from typing import Hashable

_REGISTRY: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[Hashable, asyncio.Lock]] = (
    weakref.WeakKeyDictionary()
)


def shared_lock(*key: Hashable) -> asyncio.Lock:
    """Return the lock for ``key`` on the running loop, creating it on first use.

    Raises:
        RuntimeError: If called outside a running event loop.
    """
    loop = asyncio.get_running_loop()
    locks = _REGISTRY.setdefault(loop, {})
    lock = locks.get(key)
    if lock is None:
        lock = locks[key] = asyncio.Lock()
    return lock
