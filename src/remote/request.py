# src/remote/request.py — v1
"""Translation of a merged configuration into the remote request payload."""

from __future__ import annotations

import re
from typing import Any, Mapping

_UPPER_RE = re.compile(r"([A-Z])")


def camel_to_underscore(name: str) -> str:
    """``backgroundColor`` -> ``background_color``."""
    return _UPPER_RE.sub(lambda m: "_" + m.group(1).lower(), name).lstrip("_")


def underscore_keys(value: Any) -> Any:
    """Recursively convert mapping keys from camelCase to snake_case."""
    if isinstance(value, Mapping):
        return {camel_to_underscore(str(k)): underscore_keys(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [underscore_keys(v) for v in value]
    return value


def build_request(config: Mapping[str, Any]) -> dict[str, Any]:
    """Build the ``favicon_generation`` payload from a merged configuration."""
    icons_path = config.get("iconsPath")
    if icons_path in (None, "", "/"):
        files_location: dict[str, Any] = {"type": "root"}
    else:
        files_location = {"type": "path", "path": icons_path}

    request: dict[str, Any] = {
        "api_key": config.get("apiKey", ""),
        "master_picture": dict(config.get("masterPicture") or {}),
        "files_location": files_location,
        "favicon_design": underscore_keys(config.get("design") or {}),
    }
    for key, target in (("settings", "settings"), ("versioning", "versioning")):
        if config.get(key) is not None:
            request[target] = underscore_keys(config[key])
    return request
