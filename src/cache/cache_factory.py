# src/cache/cache_factory.py — v3
"""Factory for cache store instantiation."""

from __future__ import annotations

from rfgbuild.cache.base_cache_store import BaseCacheStore
from rfgbuild.config.settings import Settings


def create_cache_store(settings: Settings | None = None) -> BaseCacheStore:
    """Instantiate the filesystem cache store rooted at ``settings.cache_root``.

    Args:
        settings: Application settings. Defaults to ``~/.cache/rfgbuild``.
    """
    from rfgbuild.cache.file_store import FileCacheStore

    cache_root = "~/.cache/rfgbuild" if settings is None else settings.cache_root_path
    return FileCacheStore(cache_root=cache_root)
