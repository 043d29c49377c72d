# tests/unit/cache/test_unit_cache_factory.py — v3
"""Tests for cache/cache_factory.py."""

from __future__ import annotations

from rfgbuild.cache.cache_factory import create_cache_store
from rfgbuild.cache.file_store import FileCacheStore


class TestCreateCacheStore:
    def test_uses_settings_root(self, settings):
        store = create_cache_store(settings)
        assert isinstance(store, FileCacheStore)
        assert store.root == settings.cache_root_path.resolve()
        assert store.root.is_dir()
