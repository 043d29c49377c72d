# src/config/source.py — v1
"""Favicon source image resolution and master picture encoding."""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Any, Iterable

from rfgbuild.core.errors import SourceNotFoundError
from rfgbuild.core.util import is_url

logger = logging.getLogger(__name__)


def _glob(pattern: str, cwd: Path) -> list[Path]:
    path = Path(pattern)
    if path.is_absolute():
        return sorted(p for p in path.parent.glob(path.name) if p.is_file())
    return sorted(p for p in cwd.glob(pattern) if p.is_file())


def resolve_source(sources: Iterable[str], cwd: Path | None = None) -> str:
    """Return the first URL, existing file or glob match among ``sources``.

    Raises:
        SourceNotFoundError: If nothing matches.
    """
    root = Path(cwd) if cwd is not None else Path.cwd()
    patterns = list(sources)

    for entry in patterns:
        if is_url(entry):
            return entry
        candidate = Path(entry)
        if not candidate.is_absolute():
            candidate = root / candidate
        if candidate.is_file():
            return str(candidate.resolve())

    for entry in patterns:
        if is_url(entry):
            continue
        matches = _glob(entry, root)
        if matches:
            logger.debug("Favicon source %s matched %s", entry, matches[0])
            return str(matches[0].resolve())

    raise SourceNotFoundError(
        "No favicon could be found, try explicitly specifying a file path or URL "
        f"for the \"src\" option (searched in {root} for: {', '.join(patterns)})."
    )


def master_picture(source: str) -> dict[str, Any]:
    """Describe the source for the remote service: a URL or inline base64 content."""
    if is_url(source):
        return {"type": "url", "url": source}
    path = Path(source)
    if not path.is_file():
        raise SourceNotFoundError(f"Favicon source {source} does not exist.")
    return {"type": "inline", "content": base64.b64encode(path.read_bytes()).decode("ascii")}
