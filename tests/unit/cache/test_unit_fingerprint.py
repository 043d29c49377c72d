# tests/unit/cache/test_unit_fingerprint.py — v1
"""Tests for cache/fingerprint.py — canonical JSON and SHA-256 keys."""

from __future__ import annotations

from pathlib import Path

from rfgbuild.cache.fingerprint import canonical_json, compute_fingerprint


class TestCanonicalJson:
    def test_sorted_compact(self):
        assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_non_ascii_kept(self):
        assert canonical_json({"name": "café"}) == '{"name":"café"}'

    def test_path_fallback(self):
        assert canonical_json({"p": Path("a/b")}) == '{"p":"a/b"}'

    def test_set_fallback_is_sorted(self):
        assert canonical_json({"s": {"b", "a"}}) == canonical_json({"s": {"a", "b"}})


class TestComputeFingerprint:
    def test_key_order_independent(self):
        c1 = {"api_key": "k", "favicon_design": {"desktop_browser": {}, "ios": {"margin": 4}}}
        c2 = {"favicon_design": {"ios": {"margin": 4}, "desktop_browser": {}}, "api_key": "k"}
        assert compute_fingerprint(c1) == compute_fingerprint(c2)

    def test_value_change_changes_fingerprint(self):
        assert compute_fingerprint({"a": 1}) != compute_fingerprint({"a": 2})

    def test_list_order_matters(self):
        assert compute_fingerprint({"a": [1, 2]}) != compute_fingerprint({"a": [2, 1]})

    def test_sha256_hex(self):
        fp = compute_fingerprint({})
        assert len(fp) == 64
        int(fp, 16)
