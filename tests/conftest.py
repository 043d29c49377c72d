# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides a fake generation client, a source image, settings rooted in a
temp directory and sample descriptors. No network: all remote I/O is faked.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from rfgbuild.config.settings import Settings
from rfgbuild.core.errors import RemoteServiceError
from rfgbuild.core.models import ArtifactDescriptor, ArtifactSet, FaviconDescriptor
from rfgbuild.logging.context import clear_context
from rfgbuild.remote.base_client import BaseGenerationClient

SAMPLE_HTML_CODE = (
    '<link rel="icon" type="image/png" sizes="32x32" href="/favicon-32x32.png">\n'
    '<link rel="manifest" href="/site.webmanifest">\n'
    '<meta name="theme-color" content="#ffffff">'
)

SAMPLE_FILES: dict[str, bytes] = {
    "favicon.ico": b"\x00\x00\x01\x00ico",
    "favicon-32x32.png": b"\x89PNG32",
    "site.webmanifest": b'{"icons": [{"src": "/android-chrome-192x192.png"}]}',
}


class FakeGenerationClient(BaseGenerationClient):
    """In-memory stand-in for the remote service."""

    def __init__(
        self,
        files: dict[str, bytes] | None = None,
        html_code: str = SAMPLE_HTML_CODE,
        overlapping_markups: list[str] | None = None,
        preview_picture_url: str | None = None,
        fail_with: str | None = None,
    ) -> None:
        self.files = dict(SAMPLE_FILES if files is None else files)
        self.html_code = html_code
        self.overlapping_markups = overlapping_markups or ['<link rel="icon">']
        self.preview_picture_url = preview_picture_url
        self.fail_with = fail_with
        self.requests: list[dict[str, Any]] = []
        self.preview_downloads: list[str] = []
        self.closed = False

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def generate(self, request: dict[str, Any], files_dir: Path) -> ArtifactSet:
        self.requests.append(request)
        if self.fail_with is not None:
            raise RemoteServiceError(self.fail_with)
        files_dir.mkdir(parents=True, exist_ok=True)
        for name, data in self.files.items():
            target = files_dir / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        descriptor = ArtifactDescriptor(
            favicon=FaviconDescriptor(
                html_code=self.html_code,
                overlapping_markups=self.overlapping_markups,
                files_urls=[f"https://cdn.example.com/{n}" for n in self.files],
            ),
            preview_picture_url=self.preview_picture_url,
        )
        return ArtifactSet(descriptor=descriptor, files_dir=files_dir, files=sorted(self.files))

    async def download_preview(self, url: str, target: Path) -> Path | None:
        self.preview_downloads.append(url)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(b"\x89PNGpreview")
        return target

    async def aclose(self) -> None:
        self.closed = True


# === FIXTURES ===


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


@pytest.fixture
def fake_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def client_factory() -> type[FakeGenerationClient]:
    """The fake client class, for tests needing a custom response."""
    return FakeGenerationClient


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with a private cache root and a test API key."""
    return Settings(
        _env_file=None,
        api_key="test-api-key-0123456789",
        cache_root=tmp_path / "cache",
        watch_poll_interval_s=0.01,
        max_retries=0,
    )


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project directory holding a favicon source image."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "favicon.png").write_bytes(b"\x89PNG\r\n\x1a\nmaster")
    return root


@pytest.fixture
def sample_descriptor() -> ArtifactDescriptor:
    return ArtifactDescriptor(
        favicon=FaviconDescriptor(html_code=SAMPLE_HTML_CODE, overlapping_markups=['<link rel="icon">']),
        preview_picture_url="https://realfavicongenerator.net/files/abc/preview.png",
    )


@pytest.fixture
def sample_artifacts(tmp_path: Path, sample_descriptor: ArtifactDescriptor) -> ArtifactSet:
    """An ArtifactSet staged on disk."""
    files_dir = tmp_path / "staged" / "files"
    files_dir.mkdir(parents=True)
    for name, data in SAMPLE_FILES.items():
        (files_dir / name).write_bytes(data)
    return ArtifactSet(descriptor=sample_descriptor, files_dir=files_dir, files=sorted(SAMPLE_FILES))
