# src/cache/base_cache_store.py — v2
"""Abstract cache store interface."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path

from rfgbuild.cache.models import CacheEntry
from rfgbuild.core.models import ArtifactSet


class BaseCacheStore(ABC):
    """Fingerprint-addressed storage for remote generation results."""

    @property
    @abstractmethod
    def root(self) -> Path:
        """Directory holding every entry."""

    @abstractmethod
    def lock(self, fingerprint: str) -> asyncio.Lock:
        """Return the writer lock for a fingerprint (one writer at a time)."""

    @abstractmethod
    def staging_area(self, fingerprint: str) -> Path:
        """Create a private directory whose ``files/`` a generation writes into."""

    @abstractmethod
    async def discard(self, staging: Path) -> None:
        """Remove a staging area."""

    @abstractmethod
    async def lookup(self, fingerprint: str) -> CacheEntry | None:
        """Return the complete entry for a fingerprint, or None. No network."""

    @abstractmethod
    async def store(self, fingerprint: str, artifacts: ArtifactSet) -> CacheEntry:
        """Replace the entry for a fingerprint. Caller must hold ``lock()``."""

    @abstractmethod
    async def delete(self, fingerprint: str) -> None:
        """Remove an entry. Caller must hold ``lock()``."""

    @abstractmethod
    async def clear(self) -> int:
        """Remove every entry, returning the number removed."""
