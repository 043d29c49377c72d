# src/core/util.py — v1
"""Small helpers shared by the pipeline and CLI."""

from __future__ import annotations

import math
import os
from pathlib import Path


def mask_string(value: object, mask: str = "*") -> str:
    """Mask all but the first and last 10% of a string (for API keys in logs)."""
    text = f"{value}"
    if not text:
        return text
    keep = math.ceil(len(text) * 0.10)
    middle = len(text) - keep * 2
    if middle <= 0:
        return mask * len(text)
    return text[:keep] + mask * middle + text[-keep:]


def relative_path(path: str | Path | None, start: str | Path | None = None) -> str:
    """Render ``path`` relative to ``start`` (cwd by default) as ``./...``."""
    if not path:
        return ""
    base = Path(start) if start is not None else Path.cwd()
    try:
        rel = os.path.relpath(Path(path), base)
    except ValueError:
        # Different drives on Windows.
        return str(path)
    return f"./{Path(rel).as_posix()}"


def is_url(value: object) -> bool:
    """Return True for http(s) URLs."""
    return isinstance(value, str) and value.lower().startswith(("http://", "https://"))
