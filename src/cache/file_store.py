# src/cache/file_store.py — v2
"""Filesystem cache store (one directory per fingerprint).

Entries are built in a staging directory and swapped into place with
renames, so readers only ever see the previous complete entry or the next
complete one. Writers for a fingerprint are serialized by ``lock()``, which
is shared by every store instance on the same root.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import time
from pathlib import Path

from rfgbuild.cache.base_cache_store import BaseCacheStore
from rfgbuild.cache.models import CacheEntry, CacheStats
from rfgbuild.core.errors import CacheWriteError
from rfgbuild.core.locks import shared_lock
from rfgbuild.core.models import ArtifactDescriptor, ArtifactSet
from rfgbuild.storage import layout

logger = logging.getLogger(__name__)

# Staging/trash directories younger than this may belong to a run in flight.
STALE_AFTER_S = 24 * 3600


class FileCacheStore(BaseCacheStore):
    """Cache store persisting descriptors and files under ``cache_root``."""

    def __init__(self, cache_root: Path | str, stale_after_s: float = STALE_AFTER_S) -> None:
        self._root = Path(cache_root).expanduser().resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._stale_after_s = stale_after_s
        self._purge_internal_dirs()

    @property
    def root(self) -> Path:
        return self._root

    def lock(self, fingerprint: str) -> asyncio.Lock:
        return shared_lock("cache", self._root, fingerprint)

    def staging_area(self, fingerprint: str) -> Path:
        """Create a private directory for the remote client to download into.

        Lives under the cache root so the final move is a rename.
        """
        path = layout.staging_dir(self._root, fingerprint)
        layout.files_dir(path).mkdir(parents=True)
        return path

    async def discard(self, staging: Path) -> None:
        """Remove a staging area left by a failed or bypassed write."""
        await asyncio.to_thread(shutil.rmtree, staging, ignore_errors=True)

    async def lookup(self, fingerprint: str) -> CacheEntry | None:
        """Return the complete entry for ``fingerprint`` or None."""
        entry_path = layout.entry_dir(self._root, fingerprint)
        response = layout.response_path(entry_path)
        files = layout.files_dir(entry_path)
        if not response.is_file() or not files.is_dir():
            return None

        try:
            raw = await asyncio.to_thread(response.read_text, encoding="utf-8")
            descriptor = ArtifactDescriptor.model_validate(json.loads(raw))
            stats = CacheStats.from_path(response)
        except (OSError, ValueError) as e:
            logger.warning("Unable to parse cached response %s: %s", response, e)
            return None
        if not descriptor.succeeded:
            logger.warning("Ignoring cached failure response %s", response)
            return None

        return CacheEntry(
            fingerprint=fingerprint,
            descriptor=descriptor,
            descriptor_path=response,
            files_dir=files,
            last_write_time=stats.last_write_time,
        )

    async def store(self, fingerprint: str, artifacts: ArtifactSet) -> CacheEntry:
        """Persist ``artifacts`` as the entry for ``fingerprint``.

        Raises:
            CacheWriteError: If the lock is not held, the descriptor reports
                a failed generation, or the write is interrupted.
        """
        if not self.lock(fingerprint).locked():
            raise CacheWriteError(
                f"Cache write for {fingerprint[:12]} attempted without holding its lock"
            )
        if not artifacts.descriptor.succeeded:
            raise CacheWriteError(
                f"Refusing to cache a failed response for {fingerprint[:12]}: "
                f"{artifacts.descriptor.error_message}"
            )

        staging = layout.staging_dir(self._root, fingerprint)
        try:
            await asyncio.to_thread(self._build_entry, staging, artifacts)
            await asyncio.to_thread(self._swap_into_place, staging, fingerprint)
        except CacheWriteError:
            await self.discard(staging)
            raise
        except OSError as e:
            await self.discard(staging)
            raise CacheWriteError(
                f"Failed to write cache entry {fingerprint[:12]}: {e}"
            ) from e

        entry = await self.lookup(fingerprint)
        if entry is None:
            raise CacheWriteError(f"Cache entry {fingerprint[:12]} unreadable after write")
        logger.info("Cached response %s (%d files)", fingerprint[:12], len(artifacts.files))
        return entry

    async def delete(self, fingerprint: str) -> None:
        if not self.lock(fingerprint).locked():
            raise CacheWriteError(
                f"Cache delete for {fingerprint[:12]} attempted without holding its lock"
            )
        entry_path = layout.entry_dir(self._root, fingerprint)
        if not entry_path.exists():
            return
        trash = layout.trash_dir(self._root, fingerprint)
        entry_path.rename(trash)
        await asyncio.to_thread(shutil.rmtree, trash, ignore_errors=True)

    async def clear(self) -> int:
        """Remove every entry, each under its own lock.

        Staging areas of runs still in flight are left alone.
        """
        removed = 0
        for path in sorted(self._root.iterdir()):
            if not path.is_dir():
                continue
            if layout.is_internal(path):
                if self._is_stale(path):
                    await asyncio.to_thread(shutil.rmtree, path, ignore_errors=True)
                continue
            async with self.lock(path.name):
                await self.delete(path.name)
            removed += 1
        logger.info("Cleared %d cache entries from %s", removed, self._root)
        return removed

    # --- internals ---

    @staticmethod
    def _build_entry(staging: Path, artifacts: ArtifactSet) -> None:
        source = Path(artifacts.files_dir)
        if not source.is_dir():
            raise CacheWriteError(f"Generated files directory {source} is missing")
        present = sorted(p.relative_to(source).as_posix() for p in source.rglob("*") if p.is_file())
        if present != sorted(artifacts.files):
            missing = sorted(set(artifacts.files) - set(present))
            unexpected = sorted(set(present) - set(artifacts.files))
            raise CacheWriteError(
                f"Generated files in {source} do not match the response "
                f"(missing: {missing}, unexpected: {unexpected})"
            )

        staging.mkdir(parents=True)
        shutil.move(str(source), str(layout.files_dir(staging)))
        layout.response_path(staging).write_text(
            artifacts.descriptor.model_dump_json(), encoding="utf-8"
        )

    def _swap_into_place(self, staging: Path, fingerprint: str) -> None:
        final = layout.entry_dir(self._root, fingerprint)
        trash: Path | None = None
        if final.exists():
            trash = layout.trash_dir(self._root, fingerprint)
            final.rename(trash)
        staging.rename(final)
        if trash is not None:
            shutil.rmtree(trash, ignore_errors=True)

    def _is_stale(self, path: Path) -> bool:
        try:
            newest = max(
                [path.stat().st_mtime] + [child.stat().st_mtime for child in path.iterdir()]
            )
        except OSError:
            return False
        return time.time() - newest > self._stale_after_s

    def _purge_internal_dirs(self) -> None:
        """Drop staging/trash leftovers from interrupted runs."""
        for path in self._root.iterdir():
            if path.is_dir() and layout.is_internal(path) and self._is_stale(path):
                logger.debug("Removing leftover %s", path)
                shutil.rmtree(path, ignore_errors=True)
