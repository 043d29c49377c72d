# src/remote/base_client.py — v1
"""Abstract remote generation client interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from rfgbuild.core.models import ArtifactSet


class BaseGenerationClient(ABC):
    """Opaque favicon generation service."""

    @abstractmethod
    async def generate(self, request: dict[str, Any], files_dir: Path) -> ArtifactSet:
        """Generate the bundle for ``request`` and write its files into ``files_dir``.

        Raises:
            RemoteServiceError: If the service call fails or reports an error.
        """

    @abstractmethod
    async def download_preview(self, url: str, target: Path) -> Path | None:
        """Download the preview picture. Returns None (never raises) on failure."""

    async def aclose(self) -> None:
        """Release network resources."""
