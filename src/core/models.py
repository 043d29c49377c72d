# src/core/models.py — v2
"""Shared Pydantic domain models used across modules.

No module redefines these types — all imports come from core.models.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field


# === REMOTE DESCRIPTOR ===


class FaviconDescriptor(BaseModel):
    """Favicon section of a generation response: markup and package links."""

    model_config = ConfigDict(extra="allow")

    package_url: str = ""
    files_urls: list[str] = Field(default_factory=list)
    html_code: str = ""
    compression: bool | str | None = None
    overlapping_markups: list[str] = Field(default_factory=list)


class ArtifactDescriptor(BaseModel):
    """Remote response metadata (``favicon_generation_result``).

    Stored verbatim as ``response.json`` in a cache entry.
    """

    model_config = ConfigDict(extra="allow")

    result: dict[str, Any] = Field(default_factory=lambda: {"status": "success"})
    favicon: FaviconDescriptor = Field(default_factory=FaviconDescriptor)
    files_location: dict[str, Any] = Field(default_factory=dict)
    preview_picture_url: str | None = None
    version: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.result.get("status") == "success"

    @property
    def error_message(self) -> str:
        return str(self.result.get("error_message", ""))

    @property
    def preview_file_name(self) -> str | None:
        """Base name of the preview picture, if the response has one."""
        if not self.preview_picture_url:
            return None
        name = self.preview_picture_url.rstrip("/").rsplit("/", 1)[-1]
        return name.split("?", 1)[0] or None


class ArtifactSet(BaseModel):
    """Generated files plus their descriptor, staged in ``files_dir``."""

    descriptor: ArtifactDescriptor
    files_dir: Path
    files: list[str] = Field(default_factory=list)


# === CONFIGURATION ===

PathKind = Literal["html", "manifest"]
IconsPathResolver = Callable[[str, str, str], Any]


class ResolvedConfig(BaseModel):
    """Canonical configuration produced by ConfigResolver.

    ``config`` is the merged user-facing mapping, ``request`` the payload
    sent to the remote service (and fingerprinted).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    config: dict[str, Any]
    request: dict[str, Any]
    source: str
    config_files: list[str] = Field(default_factory=list)
    icons_path_resolver: IconsPathResolver | None = Field(default=None, exclude=True)


# === RESULTS ===


class Asset(BaseModel):
    """A file written or patched by a run."""

    path: Path
    size: int

    @classmethod
    def from_path(cls, path: Path) -> Asset:
        return cls(path=path, size=path.stat().st_size)


class GenerationResult(BaseModel):
    """Outcome of one orchestrator run."""

    fingerprint: str
    descriptor: ArtifactDescriptor
    destination: Path
    cache_hit: bool = False
    assets: list[Asset] = Field(default_factory=list)
    failed_files: list[str] = Field(default_factory=list)
    preview_file: Path | None = None
