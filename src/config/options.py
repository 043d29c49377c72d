# src/config/options.py — v1
"""Per-instance generator options (the build-tool facing surface).

Settings (settings.py) describe the deployment; PluginOptions describe one
favicon bundle: where the source lives, where the output goes, which files
to patch, and how the cache behaves.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rfgbuild.cache.models import CacheStats

CachePolicy = Union[bool, int, float, Callable[[CacheStats], bool], None]

DEFAULT_CONFIG_FILES: list[str] = [
    ".rfgrc.json",
    "rfgrc.json",
    "rfg.json",
    ".rfg.json",
    "rfg.config.json",
    ".rfg.config.json",
]

DEFAULT_MANIFEST_FILES: list[str] = [
    "manifest.json",
    "*.webmanifest",
    "browserconfig.xml",
    "ieconfig.xml",
]

_IMAGE_EXTENSIONS = ("ico", "png", "jpeg", "jpg", "gif", "svg")
_IMAGE_DIRS = ("img", "image", "images", "favicon", "favicons")

# Current directory first, then the usual image sub-folders.
DEFAULT_SOURCE_PATTERNS: list[str] = [
    f"*favicon*.{ext}" for ext in _IMAGE_EXTENSIONS
] + [f"{d}/*favicon*.{ext}" for d in _IMAGE_DIRS for ext in _IMAGE_EXTENSIONS]


class PluginOptions(BaseModel):
    """Options for one favicon generator instance."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    cache: CachePolicy = True
    config: dict[str, Any] = Field(default_factory=dict)
    config_files: list[str] = Field(default_factory=lambda: list(DEFAULT_CONFIG_FILES))
    config_cwd: Path | None = None
    debug: bool = False
    dest: Path = Path("favicons")
    keep: list[str] | None = None
    html_files: list[Path] = Field(default_factory=list)
    manifest_files: list[str] = Field(default_factory=lambda: list(DEFAULT_MANIFEST_FILES))
    src: list[str] = Field(default_factory=lambda: list(DEFAULT_SOURCE_PATTERNS))
    src_cwd: Path | None = None
    watch: bool = True

    @field_validator("keep", "config_files", "manifest_files", "src", mode="before")
    @classmethod
    def _coerce_str_list(cls, v: Any) -> Any:
        if isinstance(v, (str, Path)):
            return [str(v)]
        return v

    @field_validator("html_files", mode="before")
    @classmethod
    def _coerce_path_list(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, (str, Path)):
            return [v]
        return v
