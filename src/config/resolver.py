# src/config/resolver.py — v1
"""Merge defaults, discovered config files and inline options.

Merge order (later wins, top-level keys):
    built-in defaults -> discovered files (discovery order) -> explicit
    sources -> inline ``config`` option -> ``masterPicture`` derived from the
    resolved source (never user-overridable)
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Mapping, Sequence

from rfgbuild.config.discovery import ConfigSource, discover_configs
from rfgbuild.config.options import PluginOptions
from rfgbuild.config.settings import API_KEY_ENV_VAR, Settings
from rfgbuild.config.source import master_picture, resolve_source
from rfgbuild.core.errors import ConfigurationError
from rfgbuild.core.models import ResolvedConfig
from rfgbuild.core.util import mask_string
from rfgbuild.markup.path_tokens import ICONS_PATH_TOKEN
from rfgbuild.remote.request import build_request

logger = logging.getLogger(__name__)

BUILTIN_DEFAULTS: dict[str, Any] = {"design": {}}

DESIGN_DOCS_URL = "https://realfavicongenerator.net/api/non_interactive_api#favicon_design"
API_KEY_DOCS_URL = "https://realfavicongenerator.net/api"


def _missing_api_key_message() -> str:
    sample = json.dumps({"apiKey": "REPLACE WITH API KEY"}, indent=4).replace("\n", "\n\t")
    return "\n".join([
        f'To use RealFaviconGenerator, an "apiKey" must be provided. Visit {API_KEY_DOCS_URL} to request one.',
        "Once you have received an API key, set it in one of the following ways:",
        "",
        "Environment variable:",
        "",
        f"\t{API_KEY_ENV_VAR}='REPLACE WITH API KEY'",
        "",
        "JSON configuration file (rfg.config.json):",
        "",
        f"\t{sample}",
        "",
        'Inline "config" option:',
        "",
        "\tPluginOptions(config={\"apiKey\": \"REPLACE WITH API KEY\"})",
        "",
    ])


def _copy_data(value: Any) -> Any:
    # Callables (iconsPath) are shared, containers copied.
    if isinstance(value, Mapping):
        return {k: _copy_data(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_copy_data(v) for v in value]
    return value


def merge_configs(layers: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    """Shallow-merge configuration layers, later layers winning."""
    merged: dict[str, Any] = _copy_data(BUILTIN_DEFAULTS)
    for layer in layers:
        merged.update(_copy_data(layer))
    return merged


class ConfigResolver:
    """Produce the canonical configuration for one generator instance."""

    def __init__(
        self,
        options: PluginOptions,
        settings: Settings | None = None,
        extra_sources: Sequence[ConfigSource] = (),
    ) -> None:
        self._options = options
        self._settings = settings
        self._extra_sources = list(extra_sources)

    def _env_api_key(self) -> str:
        if self._settings is not None:
            return self._settings.api_key
        return os.environ.get(API_KEY_ENV_VAR, "")

    def resolve(self) -> ResolvedConfig:
        """Build the canonical configuration.

        Raises:
            ConfigurationError: No credential or no design section.
            SourceNotFoundError: No favicon source could be found.
        """
        discovered = discover_configs(
            self._options.config_files,
            cwd=self._options.config_cwd,
            extra_sources=self._extra_sources,
        )
        source = resolve_source(self._options.src, cwd=self._options.src_cwd)

        config = merge_configs([d.data for d in discovered] + [self._options.config])
        config["masterPicture"] = master_picture(source)

        if not config.get("apiKey"):
            api_key = self._env_api_key()
            if not api_key:
                raise ConfigurationError(_missing_api_key_message())
            config["apiKey"] = api_key

        design = config.get("design")
        if not isinstance(design, Mapping) or not design:
            raise ConfigurationError(
                'To use RealFaviconGenerator, one or more "design" sections must be provided. '
                f"Visit {DESIGN_DOCS_URL}"
            )

        resolver = None
        if callable(config.get("iconsPath")):
            resolver = config["iconsPath"]
            config["iconsPath"] = ICONS_PATH_TOKEN
            config["settings"] = {**(config.get("settings") or {}), "usePathAsIs": True}

        resolved = ResolvedConfig(
            config=config,
            request=build_request(config),
            source=source,
            config_files=[d.origin for d in discovered],
            icons_path_resolver=resolver,
        )
        logger.info(
            "Initialized configuration (API Key: %s, source: %s)",
            mask_string(config["apiKey"]), source,
        )
        return resolved
