# tests/unit/config/test_unit_resolver.py — v1
"""Tests for config/resolver.py — merge order, credential and design checks."""

from __future__ import annotations

import json
import logging

import pytest

from rfgbuild.config.options import PluginOptions
from rfgbuild.config.resolver import ConfigResolver, merge_configs
from rfgbuild.core.errors import ConfigurationError, SourceNotFoundError
from rfgbuild.markup.path_tokens import ICONS_PATH_TOKEN

DESIGN = {"desktopBrowser": {}}


def _options(project_dir, **kwargs):
    kwargs.setdefault("config", {"design": DESIGN})
    return PluginOptions(src_cwd=project_dir, config_cwd=project_dir, **kwargs)


class TestMergeConfigs:
    def test_later_wins_shallow(self):
        merged = merge_configs([{"design": {"ios": {}}, "apiKey": "a"}, {"design": {"android": {}}}])
        assert merged == {"design": {"android": {}}, "apiKey": "a"}

    def test_builtin_defaults(self):
        assert merge_configs([]) == {"design": {}}

    def test_layers_not_mutated(self):
        layer = {"design": {"ios": {}}}
        merged = merge_configs([layer])
        merged["design"]["android"] = {}
        assert layer == {"design": {"ios": {}}}

    def test_callables_shared(self):
        def resolver(ref, path, kind):
            return ref

        assert merge_configs([{"iconsPath": resolver}])["iconsPath"] is resolver


class TestConfigResolver:
    def test_inline_overrides_files(self, project_dir, settings):
        (project_dir / "rfg.json").write_text(
            json.dumps({"apiKey": "file-key", "design": {"ios": {}}, "versioning": True}),
            encoding="utf-8",
        )
        resolved = ConfigResolver(_options(project_dir), settings).resolve()
        assert resolved.config["design"] == DESIGN
        assert resolved.config["apiKey"] == "file-key"
        assert resolved.config["versioning"] is True
        assert resolved.config_files == [str((project_dir / "rfg.json").resolve())]

    def test_credential_from_settings(self, project_dir, settings):
        resolved = ConfigResolver(_options(project_dir), settings).resolve()
        assert resolved.request["api_key"] == settings.api_key

    def test_credential_from_environment(self, project_dir, monkeypatch):
        monkeypatch.setenv("RFG_API_KEY", "env-key")
        resolved = ConfigResolver(_options(project_dir)).resolve()
        assert resolved.config["apiKey"] == "env-key"

    def test_missing_credential(self, project_dir, monkeypatch):
        monkeypatch.delenv("RFG_API_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="RFG_API_KEY"):
            ConfigResolver(_options(project_dir)).resolve()

    def test_missing_design(self, project_dir, settings):
        with pytest.raises(ConfigurationError, match='"design"'):
            ConfigResolver(_options(project_dir, config={}), settings).resolve()

    def test_missing_source(self, tmp_path, settings):
        opts = PluginOptions(src_cwd=tmp_path, config_cwd=tmp_path, config={"design": DESIGN})
        with pytest.raises(SourceNotFoundError):
            ConfigResolver(opts, settings).resolve()

    def test_master_picture_not_overridable(self, project_dir, settings):
        opts = _options(
            project_dir,
            config={"design": DESIGN, "masterPicture": {"type": "url", "url": "https://x"}},
        )
        resolved = ConfigResolver(opts, settings).resolve()
        assert resolved.request["master_picture"]["type"] == "inline"

    def test_extra_sources_between_files_and_inline(self, project_dir, settings):
        opts = _options(project_dir, config={"design": DESIGN})
        resolved = ConfigResolver(
            opts, settings, extra_sources=[lambda: {"design": {"ios": {}}, "settings": {"scalingAlgorithm": "Mitchell"}}]
        ).resolve()
        assert resolved.config["design"] == DESIGN
        assert resolved.request["settings"] == {"scaling_algorithm": "Mitchell"}

    def test_callable_icons_path(self, project_dir, settings):
        def icons_path(ref, file_path, kind):
            return "/static" + ref

        opts = _options(project_dir, config={"design": DESIGN, "iconsPath": icons_path})
        resolved = ConfigResolver(opts, settings).resolve()
        assert resolved.icons_path_resolver is icons_path
        assert resolved.request["files_location"] == {"type": "path", "path": ICONS_PATH_TOKEN}
        assert resolved.request["settings"]["use_path_as_is"] is True

    def test_api_key_masked_in_log(self, project_dir, settings, caplog):
        with caplog.at_level(logging.INFO, logger="rfgbuild"):
            ConfigResolver(_options(project_dir), settings).resolve()
        assert settings.api_key not in caplog.text
        assert "API Key" in caplog.text
