# src/config/discovery.py — v2
"""Configuration file discovery and loading.

Discovered files are JSON documents whose top level must be an object.
Programmatic sources (a mapping, or a zero-argument factory returning one)
are passed explicitly; no user code is imported or executed from disk.
Anything unusable is skipped with a warning, never fatal, except a file
the user named explicitly (``read_config_file``).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Sequence, Union

from rfgbuild.core.errors import ConfigurationError
from rfgbuild.core.util import relative_path

logger = logging.getLogger(__name__)

ConfigFactory = Callable[[], Mapping[str, Any]]
ConfigSource = Union[Mapping[str, Any], ConfigFactory]


@dataclass(frozen=True)
class DiscoveredConfig:
    """One usable configuration fragment and where it came from."""

    origin: str
    data: dict[str, Any]


def find_config_files(patterns: Iterable[str], cwd: Path | None = None) -> list[Path]:
    """Return files matching ``patterns`` under ``cwd``, in pattern order."""
    root = Path(cwd) if cwd is not None else Path.cwd()
    found: list[Path] = []
    seen: set[Path] = set()
    for pattern in patterns:
        for path in sorted(root.glob(pattern)):
            resolved = path.resolve()
            if not path.is_file() or resolved in seen:
                continue
            seen.add(resolved)
            found.append(resolved)
    return found


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse a JSON config file the caller requires.

    Raises:
        ConfigurationError: If the file is missing, unreadable, not JSON, or
            not a JSON object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(
            f"Unable to read configuration file {relative_path(path)}: {e.strerror or e}. "
            "Check the path passed as the configuration file."
        ) from e
    except ValueError as e:
        raise ConfigurationError(
            f"Configuration file {relative_path(path)} is not valid JSON: {e}. "
            'It must hold a JSON object such as {"design": {...}}.'
        ) from e
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file {relative_path(path)} must be a JSON object. "
            f"Got instead: {type(data).__name__}"
        )
    return data


def load_config_file(path: Path) -> dict[str, Any] | None:
    """Parse a discovered JSON config file; None (with a warning) if unusable."""
    try:
        return read_config_file(path)
    except ConfigurationError as e:
        logger.warning("Unable to load configuration file, skipping: %s", e)
        return None


def evaluate_source(source: ConfigSource, origin: str) -> dict[str, Any] | None:
    """Turn a mapping or factory into a plain dict; None (with a warning) if unusable."""
    try:
        data = source() if callable(source) else source
    except Exception as e:
        logger.warning("Configuration factory %s failed, skipping: %s", origin, e)
        return None
    if not isinstance(data, Mapping):
        logger.warning(
            "Configuration source %s must be a mapping or a function returning one. Got instead: %s",
            origin, type(data).__name__,
        )
        return None
    return dict(data)


def discover_configs(
    patterns: Iterable[str],
    cwd: Path | None = None,
    extra_sources: Sequence[ConfigSource] = (),
) -> list[DiscoveredConfig]:
    """Load discovered files, then explicit sources, in that order."""
    configs: list[DiscoveredConfig] = []

    for path in find_config_files(patterns, cwd):
        data = load_config_file(path)
        if data is not None:
            logger.debug("Loaded configuration %s", relative_path(path))
            configs.append(DiscoveredConfig(origin=str(path), data=data))

    for index, source in enumerate(extra_sources):
        origin = getattr(source, "__name__", f"source[{index}]")
        data = evaluate_source(source, origin)
        if data is not None:
            configs.append(DiscoveredConfig(origin=origin, data=data))

    if not configs:
        logger.debug("No configuration files detected")
    return configs
