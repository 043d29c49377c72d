# tests/unit/cache/test_unit_file_store.py — v2
"""Tests for cache/file_store.py — staged, lock-guarded cache entries."""

from __future__ import annotations

import asyncio
import json
import os
import time

import pytest

from rfgbuild.cache.file_store import STALE_AFTER_S, FileCacheStore
from rfgbuild.core.errors import CacheWriteError
from rfgbuild.core.models import ArtifactDescriptor, ArtifactSet
from rfgbuild.storage import layout

FP = "a" * 64


@pytest.fixture
def store(tmp_path):
    return FileCacheStore(cache_root=tmp_path / "cache")


def _stage(store, files: dict[str, bytes], descriptor: ArtifactDescriptor) -> ArtifactSet:
    staging = store.staging_area(FP)
    files_dir = layout.files_dir(staging)
    for name, data in files.items():
        (files_dir / name).write_bytes(data)
    return ArtifactSet(descriptor=descriptor, files_dir=files_dir, files=sorted(files))


class TestLookup:
    @pytest.mark.asyncio
    async def test_missing(self, store):
        assert await store.lookup(FP) is None

    @pytest.mark.asyncio
    async def test_unparseable_response_ignored(self, store):
        entry = layout.entry_dir(store.root, FP)
        layout.files_dir(entry).mkdir(parents=True)
        layout.response_path(entry).write_text("{not json", encoding="utf-8")
        assert await store.lookup(FP) is None

    @pytest.mark.asyncio
    async def test_failed_response_ignored(self, store):
        entry = layout.entry_dir(store.root, FP)
        layout.files_dir(entry).mkdir(parents=True)
        layout.response_path(entry).write_text(
            json.dumps({"result": {"status": "error", "error_message": "bad key"}}),
            encoding="utf-8",
        )
        assert await store.lookup(FP) is None


class TestStore:
    @pytest.mark.asyncio
    async def test_store_and_lookup(self, store, sample_descriptor):
        artifacts = _stage(store, {"favicon.ico": b"ico"}, sample_descriptor)
        async with store.lock(FP):
            entry = await store.store(FP, artifacts)
        assert entry.fingerprint == FP
        assert (entry.files_dir / "favicon.ico").read_bytes() == b"ico"
        assert entry.descriptor.favicon.html_code == sample_descriptor.favicon.html_code

        found = await store.lookup(FP)
        assert found is not None
        assert found.descriptor_path == layout.response_path(layout.entry_dir(store.root, FP))

    @pytest.mark.asyncio
    async def test_requires_lock(self, store, sample_descriptor):
        artifacts = _stage(store, {"favicon.ico": b"ico"}, sample_descriptor)
        with pytest.raises(CacheWriteError):
            await store.store(FP, artifacts)

    @pytest.mark.asyncio
    async def test_refuses_failed_descriptor(self, store):
        failed = ArtifactDescriptor(result={"status": "error", "error_message": "nope"})
        artifacts = _stage(store, {}, failed)
        async with store.lock(FP):
            with pytest.raises(CacheWriteError, match="nope"):
                await store.store(FP, artifacts)
        assert await store.lookup(FP) is None

    @pytest.mark.asyncio
    async def test_overwrite_leaves_no_stale_files(self, store, sample_descriptor):
        async with store.lock(FP):
            await store.store(FP, _stage(store, {"old.png": b"old"}, sample_descriptor))
            entry = await store.store(FP, _stage(store, {"new.png": b"new"}, sample_descriptor))
        names = sorted(p.name for p in entry.files_dir.iterdir())
        assert names == ["new.png"]

    @pytest.mark.asyncio
    async def test_no_internal_dirs_left(self, store, sample_descriptor):
        artifacts = _stage(store, {"favicon.ico": b"ico"}, sample_descriptor)
        staging = artifacts.files_dir.parent
        async with store.lock(FP):
            await store.store(FP, artifacts)
        await store.discard(staging)
        assert [p.name for p in store.root.iterdir()] == [FP]


class TestDeleteAndClear:
    @pytest.mark.asyncio
    async def test_delete(self, store, sample_descriptor):
        async with store.lock(FP):
            await store.store(FP, _stage(store, {"a.png": b"a"}, sample_descriptor))
            await store.delete(FP)
        assert await store.lookup(FP) is None
        assert not layout.entry_dir(store.root, FP).exists()

    @pytest.mark.asyncio
    async def test_delete_requires_lock(self, store):
        with pytest.raises(CacheWriteError):
            await store.delete(FP)

    @pytest.mark.asyncio
    async def test_clear_counts_entries(self, store, sample_descriptor):
        async with store.lock(FP):
            await store.store(FP, _stage(store, {"a.png": b"a"}, sample_descriptor))
        in_flight = store.staging_area("b" * 64)
        removed = await store.clear()
        assert removed == 1
        assert not layout.entry_dir(store.root, FP).exists()
        assert in_flight.is_dir()

    @pytest.mark.asyncio
    async def test_clear_waits_for_lock(self, store, sample_descriptor):
        async with store.lock(FP):
            await store.store(FP, _stage(store, {"a.png": b"a"}, sample_descriptor))
            clearing = asyncio.create_task(store.clear())
            await asyncio.sleep(0.01)
            assert not clearing.done()
            assert await store.lookup(FP) is not None
        assert await clearing == 1
        assert await store.lookup(FP) is None


class TestInternalDirs:
    def test_stale_staging_purged_on_init(self, tmp_path):
        root = tmp_path / "cache"
        leftover = layout.staging_dir(root, FP)
        leftover.mkdir(parents=True)
        old = time.time() - 2 * STALE_AFTER_S
        os.utime(leftover, (old, old))
        FileCacheStore(cache_root=root)
        assert not leftover.exists()

    @pytest.mark.asyncio
    async def test_in_flight_staging_survives_new_store(self, store, sample_descriptor):
        artifacts = _stage(store, {"favicon.ico": b"ico"}, sample_descriptor)
        FileCacheStore(cache_root=store.root)
        assert (artifacts.files_dir / "favicon.ico").is_file()
        async with store.lock(FP):
            entry = await store.store(FP, artifacts)
        assert sorted(p.name for p in entry.files_dir.iterdir()) == ["favicon.ico"]


class TestEntryCompleteness:
    @pytest.mark.asyncio
    async def test_missing_files_dir(self, store, sample_descriptor, tmp_path):
        artifacts = ArtifactSet(
            descriptor=sample_descriptor, files_dir=tmp_path / "gone", files=["favicon.ico"]
        )
        async with store.lock(FP):
            with pytest.raises(CacheWriteError, match="missing"):
                await store.store(FP, artifacts)
        assert await store.lookup(FP) is None
        assert list(store.root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_files_mismatch(self, store, sample_descriptor):
        artifacts = _stage(store, {"favicon.ico": b"ico"}, sample_descriptor)
        artifacts.files.append("favicon-32x32.png")
        async with store.lock(FP):
            with pytest.raises(CacheWriteError, match="favicon-32x32.png"):
                await store.store(FP, artifacts)
        assert await store.lookup(FP) is None


class TestSharedLocks:
    @pytest.mark.asyncio
    async def test_same_root_same_lock(self, tmp_path):
        first = FileCacheStore(cache_root=tmp_path / "cache")
        second = FileCacheStore(cache_root=tmp_path / "cache" / ".." / "cache")
        assert first.lock(FP) is second.lock(FP)
        assert first.lock(FP) is not first.lock("b" * 64)

    @pytest.mark.asyncio
    async def test_other_root_other_lock(self, tmp_path):
        first = FileCacheStore(cache_root=tmp_path / "one")
        second = FileCacheStore(cache_root=tmp_path / "two")
        assert first.lock(FP) is not second.lock(FP)

    @pytest.mark.asyncio
    async def test_store_sees_lock_held_by_other_instance(self, tmp_path, sample_descriptor):
        first = FileCacheStore(cache_root=tmp_path / "cache")
        second = FileCacheStore(cache_root=tmp_path / "cache")
        async with first.lock(FP):
            entry = await second.store(FP, _stage(second, {"a.png": b"a"}, sample_descriptor))
        assert entry.fingerprint == FP
