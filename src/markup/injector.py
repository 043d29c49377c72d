# src/markup/injector.py — v2
"""HTML favicon markup injection.

Two modes:
    1. Marker region: content between a paired start/end marker comment is
       owned by rfgbuild and replaced wholesale, re-indented to match the
       region. Everything outside the markers is left byte-for-byte intact.
    2. Heuristic merge (no markers): elements superseded by the new markup
       (``overlapping_markups``) and copies of the snippet's own elements are
       removed, then the snippet is inserted before ``</head>``. Elements are
       located with BeautifulSoup and CSS selectors, then cut out of the
       original text at their source positions.

Markers accept three comment dialects, case-insensitively:
    <!-- RFG start -->        {# RFG start #}        {{-- RFG start --}}
with ``RFG``, ``RealFaviconGenerator`` or ``Real Favicon Generator`` as the
product name and ``start`` / ``end`` as the qualifier.
"""

from __future__ import annotations

import logging
import re
import textwrap
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import soupsieve
from bs4 import BeautifulSoup, Tag

from rfgbuild.core.errors import InjectionError

logger = logging.getLogger(__name__)

MARKER_PATTERN = re.compile(
    r"(?:<!--|\{#|\{\{--)[\s~_-]*"
    r"(?:RFG|RealFaviconGenerator|Real Favicon Generator)[\s~_-]*"
    r"(start|end)[\s~_-]*"
    r"(?:-->|#\}|--\}\})",
    re.IGNORECASE,
)

_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
# Extent of a start tag already located by the parser.
_TAG_RE = re.compile(
    r"<(?P<name>[a-zA-Z][\w:-]*)"
    r"(?P<attrs>(?:\s+[^\s=/>]+(?:\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s>]+))?)*)"
    r"\s*(?P<close>/?)>",
    re.DOTALL,
)

_VALUE_ATTRS = frozenset({"href", "src", "content"})
_INDENT_STEP = "  "


# === MARKER REGION ===


@dataclass(frozen=True)
class MarkerRegion:
    """A content split around one well-formed marker pair."""

    prefix: str
    start: str
    body: str
    end: str
    suffix: str

    def join(self, body: str | None = None) -> str:
        return self.prefix + self.start + (self.body if body is None else body) + self.end + self.suffix


def find_region(content: str, pattern: re.Pattern[str] = MARKER_PATTERN) -> MarkerRegion | None:
    """Locate the marker region, if any.

    Walks markers through the states before-region -> in-region ->
    after-region.

    Raises:
        InjectionError: On an unpaired, nested or repeated marker.
    """
    state = "before"
    start_match: re.Match[str] | None = None
    end_match: re.Match[str] | None = None

    for match in pattern.finditer(content):
        qualifier = match.group(1).lower()
        line = content.count("\n", 0, match.start()) + 1
        if state == "before":
            if qualifier != "start":
                raise InjectionError(f"End marker on line {line} has no preceding start marker")
            start_match = match
            state = "in"
        elif state == "in":
            if qualifier != "end":
                raise InjectionError(f"Start marker on line {line} opened inside an existing region")
            end_match = match
            state = "after"
        else:
            raise InjectionError(
                f"Unexpected {qualifier} marker on line {line}: only one marker region is allowed"
            )

    if state == "before":
        return None
    if state == "in" or start_match is None or end_match is None:
        raise InjectionError("Start marker has no matching end marker")

    return MarkerRegion(
        prefix=content[: start_match.start()],
        start=start_match.group(0),
        body=content[start_match.end() : end_match.start()],
        end=end_match.group(0),
        suffix=content[end_match.end() :],
    )


def _indent_lines(snippet: str, indent: str) -> str:
    """Prefix every non-empty line after the first with ``indent``."""
    return re.sub(r"(\r?\n)(?=[^\r\n])", lambda m: m.group(1) + indent, snippet)


def fill_region(region: MarkerRegion, snippet: str) -> str:
    """Replace the region body with ``snippet``, keeping its surrounding whitespace."""
    body = region.body
    snippet = snippet.strip()

    if not body.strip():
        # Empty region: indent like the end marker's line.
        newline = "\r\n" if "\r\n" in body else "\n"
        if "\n" in body:
            indent = body.rsplit("\n", 1)[1]
            return region.join(body + _indent_lines(snippet, indent) + newline + indent)
        return region.join(body + snippet)

    stripped = body.lstrip()
    lead = body[: len(body) - len(stripped)]
    trail = body[len(body.rstrip()) :]
    indent = lead.rsplit("\n", 1)[-1]
    return region.join(lead + _indent_lines(snippet, indent) + trail)


# === ELEMENT MATCHING ===


def _css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\a ")


def tag_selector(name: str, attrs: Mapping[str, Any], skip: Iterable[str] = ()) -> str:
    """CSS selector matching ``name`` with these attribute values, case-insensitively."""
    skipped = set(skip)
    parts = [soupsieve.escape(name)]
    for key, value in attrs.items():
        if key in skipped:
            continue
        if isinstance(value, list):
            value = " ".join(value)
        parts.append(f'[{soupsieve.escape(key)}="{_css_string(value or "")}" i]')
    return "".join(parts)


def compile_selector(selector: str) -> soupsieve.SoupSieve | None:
    """Compile a CSS selector such as ``link[rel="icon"]``, or a literal tag
    such as ``<link rel="icon">`` (matched on its name and attributes).

    Returns None for anything that is neither.
    """
    text = selector.strip()
    if text.startswith("<"):
        tag = BeautifulSoup(text, "html.parser").find(True)
        if tag is None:
            return None
        text = tag_selector(tag.name, tag.attrs)
    try:
        return soupsieve.compile(text)
    except soupsieve.SelectorSyntaxError:
        return None


def _compile_selectors(selectors: Iterable[str] | str | None) -> list[soupsieve.SoupSieve]:
    if selectors is None:
        return []
    if isinstance(selectors, str):
        selectors = [selectors]
    patterns = []
    for selector in selectors:
        pattern = compile_selector(selector)
        if pattern is None:
            logger.warning("Ignoring unsupported markup selector %r", selector)
            continue
        patterns.append(pattern)
    return patterns


def snippet_patterns(snippet: str) -> list[soupsieve.SoupSieve]:
    """Patterns identifying the snippet's own elements in a previous output.

    Value attributes are ignored: they may have been rewritten since.
    """
    patterns = []
    for tag in BeautifulSoup(snippet, "html.parser").find_all(True):
        if not any(key not in _VALUE_ATTRS for key in tag.attrs):
            continue
        patterns.append(soupsieve.compile(tag_selector(tag.name, tag.attrs, skip=_VALUE_ATTRS)))
    return patterns


# === SOURCE POSITIONS ===


def _comment_spans(content: str) -> list[tuple[int, int]]:
    return [m.span() for m in _COMMENT_RE.finditer(content)]


def _inside(pos: int, spans: list[tuple[int, int]]) -> bool:
    return any(start <= pos < end for start, end in spans)


def _line_offsets(content: str) -> list[int]:
    return [0] + [m.end() for m in re.finditer("\n", content)]


def _tag_offset(content: str, tag: Tag, offsets: list[int]) -> int | None:
    """Offset of ``tag``'s opening ``<`` in ``content``, as recorded by the parser."""
    if tag.sourceline is None or tag.sourcepos is None:
        return None
    pos = offsets[tag.sourceline - 1] + tag.sourcepos
    if not content.startswith("<", pos):
        logger.debug("Parser position of <%s> does not point at a tag, skipping", tag.name)
        return None
    return pos


def _start_tag_end(content: str, start: int) -> tuple[int, bool]:
    """End offset of the start tag at ``start`` and whether it is self-closed."""
    m = _TAG_RE.match(content, start)
    if m is not None:
        return m.end(), bool(m.group("close"))
    close = content.find(">", start)
    return (len(content) if close == -1 else close + 1), False


def _closing_tag(
    content: str, tag: Tag, after: int, comments: list[tuple[int, int]]
) -> re.Match[str] | None:
    """The end tag closing ``tag``, skipping those of nested same-name elements."""
    if tag.can_be_empty_element:
        return None
    nested = len(tag.find_all(tag.name))
    closing = re.compile(rf"</{re.escape(tag.name)}\s*>", re.IGNORECASE)
    seen = 0
    for m in closing.finditer(content, after):
        if _inside(m.start(), comments):
            continue
        if seen == nested:
            return m
        seen += 1
    return None


def _element_end(content: str, tag: Tag, start: int, comments: list[tuple[int, int]]) -> int:
    end, self_closed = _start_tag_end(content, start)
    if self_closed:
        return end
    closing = _closing_tag(content, tag, end, comments)
    return end if closing is None else closing.end()


def remove_elements(
    content: str,
    remove: list[soupsieve.SoupSieve],
    keep: list[soupsieve.SoupSieve] | None = None,
    always: list[soupsieve.SoupSieve] | None = None,
) -> str:
    """Remove matching elements; a line left empty is removed with its newline.

    ``keep`` only exempts elements from ``remove``. Elements matching
    ``always`` are removed regardless. Everything else is left byte-for-byte
    intact, including markup inside comments, scripts and styles.
    """
    keep = keep or []
    always = always or []
    if not remove and not always:
        return content

    soup = BeautifulSoup(content, "html.parser")
    offsets = _line_offsets(content)
    comments = _comment_spans(content)
    spans: list[tuple[int, int]] = []
    cursor = 0
    for tag in soup.find_all(True):
        forced = any(p.match(tag) for p in always)
        if not forced:
            if not any(p.match(tag) for p in remove) or any(p.match(tag) for p in keep):
                continue
        start = _tag_offset(content, tag, offsets)
        if start is None or start < cursor:
            continue
        end = _element_end(content, tag, start, comments)
        spans.append((start, end))
        cursor = end

    for start, end in reversed(spans):
        line_start = content.rfind("\n", 0, start) + 1
        newline_at = content.find("\n", end)
        line_end = len(content) if newline_at == -1 else newline_at + 1
        before = content[line_start:start]
        after = content[end:line_end]
        if not before.strip() and not after.strip():
            content = content[:line_start] + content[line_end:]
        else:
            ws_start = start - (len(before) - len(before.rstrip()))
            content = content[:ws_start] + content[end:]
    return content


# === HEURISTIC INSERTION ===


def _snippet_lines(snippet: str) -> list[str]:
    return [line.rstrip() for line in textwrap.dedent(snippet).strip("\r\n").splitlines() if line.strip()]


def insert_into_head(content: str, snippet: str) -> str:
    """Insert ``snippet`` as its own lines right before ``</head>``."""
    newline = "\r\n" if "\r\n" in content else "\n"
    lines = _snippet_lines(snippet)
    soup = BeautifulSoup(content, "html.parser")
    offsets = _line_offsets(content)
    comments = _comment_spans(content)

    head = soup.find("head")
    head_start = _tag_offset(content, head, offsets) if head is not None else None
    if head is not None and head_start is not None:
        open_end, _ = _start_tag_end(content, head_start)
        head_close = _closing_tag(content, head, open_end, comments)
        if head_close is None:
            # Unclosed head: append right after its start tag.
            block = "".join(f"{newline}{_INDENT_STEP}{text}" for text in lines)
            return content[:open_end] + block + content[open_end:]

        pos = head_close.start()
        line_start = content.rfind("\n", 0, pos) + 1
        line = content[line_start:pos]
        head_indent = line[: len(line) - len(line.lstrip())]
        block = "".join(f"{head_indent}{_INDENT_STEP}{text}{newline}" for text in lines)
        if not line.strip():
            return content[:line_start] + block + content[line_start:]
        return content[:pos] + newline + block + head_indent + content[pos:]

    block = "".join(f"{_INDENT_STEP}{text}{newline}" for text in lines)
    new_head = f"<head>{newline}{block}</head>"
    html = soup.find("html")
    html_start = _tag_offset(content, html, offsets) if html is not None else None
    if html_start is not None:
        pos, _ = _start_tag_end(content, html_start)
        return content[:pos] + newline + new_head + content[pos:]
    return new_head + newline + content


# === PUBLIC API ===


class MarkupInjector:
    """Patch HTML text with generated favicon markup."""

    def __init__(self, marker_pattern: re.Pattern[str] | None = None) -> None:
        self._pattern = marker_pattern or MARKER_PATTERN

    def inject(
        self,
        content: str,
        snippet: str,
        keep: Iterable[str] | str | None = None,
        remove_tags: Iterable[str] | str | None = None,
    ) -> str:
        """Return ``content`` with ``snippet`` injected.

        Args:
            content: HTML text to patch.
            snippet: Markup returned by the remote service.
            keep: Selectors of existing elements that ``remove_tags`` must not
                remove. Previous copies of the snippet are removed regardless.
            remove_tags: Selectors of superseded elements to strip first.

        Raises:
            InjectionError: If the marker comments are unbalanced.
        """
        region = find_region(content, self._pattern)
        if region is not None:
            logger.debug("Injecting into marker region")
            return fill_region(region, snippet)

        cleaned = remove_elements(
            content,
            _compile_selectors(remove_tags),
            keep=_compile_selectors(keep),
            always=snippet_patterns(snippet),
        )
        return insert_into_head(cleaned, snippet)
