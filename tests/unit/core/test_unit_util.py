# tests/unit/core/test_unit_util.py — v1
"""Tests for core/util.py."""

from __future__ import annotations

from rfgbuild.core.util import is_url, mask_string, relative_path


class TestMaskString:
    def test_masks_middle(self):
        assert mask_string("abcdefghijklmnopqrst") == "ab" + "*" * 16 + "st"

    def test_short_fully_masked(self):
        assert mask_string("ab") == "**"

    def test_empty(self):
        assert mask_string("") == ""


class TestRelativePath:
    def test_relative_to_start(self, tmp_path):
        assert relative_path(tmp_path / "a" / "b.png", start=tmp_path) == "./a/b.png"

    def test_parent(self, tmp_path):
        assert relative_path(tmp_path, start=tmp_path / "sub") == "./.."

    def test_empty(self):
        assert relative_path(None) == ""


class TestIsUrl:
    def test_urls(self):
        assert is_url("https://example.com")
        assert is_url("HTTP://example.com")

    def test_not_urls(self):
        assert not is_url("favicon.png")
        assert not is_url(None)
