# src/cache/models.py — v2
"""Cache domain models: CacheStats, CacheEntry."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel

from rfgbuild.core.models import ArtifactDescriptor


class CacheStats(BaseModel):
    """File statistics of a cached descriptor, handed to custom expiry predicates."""

    path: Path
    size: int
    last_write_time: datetime

    @property
    def age_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.last_write_time).total_seconds()

    @classmethod
    def from_path(cls, path: Path) -> CacheStats:
        st = path.stat()
        return cls(
            path=path,
            size=st.st_size,
            last_write_time=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )


class CacheEntry(BaseModel):
    """A complete cache entry: remote descriptor plus the generated files."""

    fingerprint: str
    descriptor: ArtifactDescriptor
    descriptor_path: Path
    files_dir: Path
    last_write_time: datetime

    @property
    def stats(self) -> CacheStats:
        return CacheStats.from_path(self.descriptor_path)
