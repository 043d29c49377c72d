# src/storage/reconciler.py — v2
"""Destination directory reconciliation from a complete cache entry.

The destination is rebuilt in a staging sibling and swapped into place, so
it is never observed half-cleared or half-populated. Writers for one
destination are serialized by a per-destination lock, shared by every
reconciler in the process.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path

from rfgbuild.core.locks import shared_lock
from rfgbuild.core.models import Asset
from rfgbuild.core.util import relative_path
from rfgbuild.storage import layout
from rfgbuild.tracking.progress import ProgressTracker

logger = logging.getLogger(__name__)


class ArtifactReconciler:
    """Clear and repopulate destination directories."""

    def __init__(self, progress: ProgressTracker | None = None) -> None:
        self._progress = progress or ProgressTracker()

    def lock(self, destination: Path) -> asyncio.Lock:
        return shared_lock("destination", Path(destination).resolve())

    async def apply(self, source_dir: Path, destination: Path) -> list[Asset]:
        """Make ``destination`` an exact copy of ``source_dir``.

        Args:
            source_dir: Files directory of a complete cache entry.
            destination: Output directory; created if missing.

        Returns:
            One Asset per copied file, in copy order.
        """
        source_dir = Path(source_dir)
        destination = Path(destination).resolve()

        async with self.lock(destination):
            files = sorted(p for p in source_dir.rglob("*") if p.is_file())
            destination.parent.mkdir(parents=True, exist_ok=True)
            staging = layout.staging_dir(destination.parent, destination.name)
            try:
                staging.mkdir()
                for index, src in enumerate(files):
                    rel = src.relative_to(source_dir)
                    await self._progress.report(
                        self._progress.step_percentage(len(files), index),
                        "Saving asset",
                        relative_path(destination / rel),
                    )
                    target = staging / rel
                    target.parent.mkdir(parents=True, exist_ok=True)
                    await asyncio.to_thread(shutil.copy2, src, target)
                await asyncio.to_thread(_swap, staging, destination)
            except BaseException:
                shutil.rmtree(staging, ignore_errors=True)
                raise

            assets = [
                Asset.from_path(destination / src.relative_to(source_dir)) for src in files
            ]

        logger.info("Reconciled %s (%d files)", destination, len(assets))
        return assets

    async def clear(self, destination: Path) -> None:
        """Empty ``destination``, creating it if it does not exist."""
        destination = Path(destination).resolve()
        async with self.lock(destination):
            if not destination.exists():
                destination.mkdir(parents=True)
                return
            trash = layout.trash_dir(destination.parent, destination.name)
            destination.rename(trash)
            destination.mkdir()
            await asyncio.to_thread(shutil.rmtree, trash, ignore_errors=True)
        logger.info("Cleaned %s", destination)


def _swap(staging: Path, destination: Path) -> None:
    trash: Path | None = None
    if destination.exists():
        trash = layout.trash_dir(destination.parent, destination.name)
        destination.rename(trash)
    staging.rename(destination)
    if trash is not None:
        shutil.rmtree(trash, ignore_errors=True)
