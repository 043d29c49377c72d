# src/storage/layout.py — v2
"""Cache directory structure definition.

    {cache_root}/
        {fingerprint}/
            response.json       # remote descriptor
            files/              # mirrors the destination layout (+ preview)
        .staging-{fingerprint}-{token}/   # in-flight writes, never read
        .trash-{fingerprint}-{token}/     # previous entry being removed
"""

from __future__ import annotations

import uuid
from pathlib import Path

RESPONSE_FILE = "response.json"
FILES_DIR = "files"
STAGING_PREFIX = ".staging-"
TRASH_PREFIX = ".trash-"


def entry_dir(cache_root: Path, fingerprint: str) -> Path:
    """Return the directory holding one fingerprint's entry."""
    safe = fingerprint.replace("/", "_").replace("\\", "_")
    return cache_root / safe


def response_path(entry_path: Path) -> Path:
    return entry_path / RESPONSE_FILE


def files_dir(entry_path: Path) -> Path:
    return entry_path / FILES_DIR


def staging_dir(parent: Path, name: str) -> Path:
    """Unique sibling directory used to build content before a swap."""
    return parent / f"{STAGING_PREFIX}{name}-{uuid.uuid4().hex[:8]}"


def trash_dir(parent: Path, name: str) -> Path:
    """Unique sibling directory a replaced directory is moved to."""
    return parent / f"{TRASH_PREFIX}{name}-{uuid.uuid4().hex[:8]}"


def is_internal(path: Path) -> bool:
    """True for staging/trash directories that readers must ignore."""
    return path.name.startswith((STAGING_PREFIX, TRASH_PREFIX))
