# src/markup/path_tokens.py — v1
"""Deferred icon path resolution.

When ``iconsPath`` is a callable, the remote service is asked to prefix
every generated path with a sentinel token. After generation, each
``{token}{reference}`` occurrence is handed to the callable and replaced by
its result. Resolutions run concurrently; substitution is positional.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
from pathlib import Path
from typing import Any

from rfgbuild.core.models import IconsPathResolver, PathKind

logger = logging.getLogger(__name__)

ICONS_PATH_TOKEN = "{{RFG-ICONS-PATH-CALLBACK}}"
ICONS_PATH_TOKEN_RE = re.compile(re.escape(ICONS_PATH_TOKEN) + r'([^"]+)')


async def _resolve(resolver: IconsPathResolver, reference: str, file_path: str, kind: str) -> Any:
    value = resolver(reference, file_path, kind)
    if inspect.isawaitable(value):
        value = await value
    return value


async def rewrite_tokens(
    text: str,
    resolver: IconsPathResolver,
    file_path: str | Path,
    kind: PathKind,
) -> str:
    """Replace every sentinel occurrence in ``text`` with the resolver's result.

    Args:
        text: Generated text containing sentinel tokens.
        resolver: ``resolver(reference, file_path, kind)``, sync or async.
        file_path: File the text belongs to, passed through to the resolver.
        kind: ``"html"`` or ``"manifest"``.

    Returns:
        Text with results substituted in document order.
    """
    matches = list(ICONS_PATH_TOKEN_RE.finditer(text))
    if not matches:
        return text

    results = await asyncio.gather(
        *(_resolve(resolver, m.group(1), str(file_path), kind) for m in matches)
    )

    parts: list[str] = []
    last = 0
    for match, value in zip(matches, results):
        parts.append(text[last : match.start()])
        parts.append(f"{value}")
        last = match.end()
    parts.append(text[last:])
    logger.debug("Resolved %d icon paths in %s", len(matches), file_path)
    return "".join(parts)


class PathTokenRewriter:
    """Bind a resolver to rewrite generated HTML and manifest files."""

    def __init__(self, resolver: IconsPathResolver) -> None:
        self._resolver = resolver

    async def rewrite(self, text: str, file_path: str | Path, kind: PathKind) -> str:
        return await rewrite_tokens(text, self._resolver, file_path, kind)

    async def rewrite_file(self, file_path: Path, kind: PathKind) -> bool:
        """Rewrite a file in place. Returns True when it changed."""
        original = await asyncio.to_thread(file_path.read_text, encoding="utf-8")
        updated = await self.rewrite(original, file_path, kind)
        if updated == original:
            return False
        await asyncio.to_thread(file_path.write_text, updated, encoding="utf-8")
        return True
