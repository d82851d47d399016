"""Structural scan of markdown-ish text.

A line-oriented state machine that finds

- boundaries: character offsets where a window may end cleanly (before a
  heading, at the end of a paragraph, around code blocks), and
- regions: half-open character ranges covering fenced code blocks
  (```` ``` ```` / ``~~~``) and multi-line ``<pre>``/``<code>`` blocks, which
  must never be split.

Markers inside a fenced block are ignored; an unclosed block runs to the end
of the text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_HEADING_RE = re.compile(r"^ {0,3}#{1,6}(?:\s|$)")
_MARKUP_OPEN_RE = re.compile(r"<(?:pre|code)\b[^>]*>", re.IGNORECASE)
_MARKUP_CLOSE_RE = re.compile(r"</(?:pre|code)\s*>", re.IGNORECASE)


class ScanState(str, Enum):
    """Where the scanner currently is."""

    TEXT = "text"
    FENCE = "fence"
    MARKUP = "markup"


@dataclass
class StructureScan:
    """Result of scanning a text."""

    boundaries: list[int] = field(default_factory=list)
    regions: list[tuple[int, int]] = field(default_factory=list)
    final_state: ScanState = ScanState.TEXT

    @property
    def balanced(self) -> bool:
        """True if no code block is left open at the end of the text."""
        return self.final_state is ScanState.TEXT


def _markup_delta(line: str) -> int:
    return len(_MARKUP_OPEN_RE.findall(line)) - len(_MARKUP_CLOSE_RE.findall(line))


def scan_structure(text: str) -> StructureScan:
    """Scan ``text`` and return its boundaries and protected regions."""
    boundaries: list[int] = []
    regions: list[tuple[int, int]] = []

    state = ScanState.TEXT
    fence_char = ""
    fence_len = 0
    markup_depth = 0
    region_start = 0
    prev_blank = True
    offset = 0

    for line in text.splitlines(keepends=True):
        start = offset
        end = offset + len(line)
        offset = end
        body = line.rstrip("\r\n")

        if state is ScanState.FENCE:
            m = _FENCE_RE.match(body)
            if (
                m
                and m.group(1)[0] == fence_char
                and len(m.group(1)) >= fence_len
                and not body[m.end():].strip()
            ):
                regions.append((region_start, end))
                boundaries.append(end)
                state = ScanState.TEXT
                prev_blank = True
            continue

        if state is ScanState.MARKUP:
            markup_depth += _markup_delta(body)
            if markup_depth <= 0:
                regions.append((region_start, end))
                boundaries.append(end)
                state = ScanState.TEXT
                markup_depth = 0
                prev_blank = True
            continue

        m = _FENCE_RE.match(body)
        if m:
            boundaries.append(start)
            state = ScanState.FENCE
            fence_char = m.group(1)[0]
            fence_len = len(m.group(1))
            region_start = start
            continue

        delta = _markup_delta(body)
        if delta > 0:
            boundaries.append(start)
            state = ScanState.MARKUP
            markup_depth = delta
            region_start = start
            continue

        blank = not body.strip()
        if _HEADING_RE.match(body):
            boundaries.append(start)
        elif blank and not prev_blank:
            # paragraph end
            boundaries.append(start)
        prev_blank = blank

    if state is not ScanState.TEXT:
        regions.append((region_start, len(text)))

    limit = len(text)
    return StructureScan(
        boundaries=sorted({b for b in boundaries if 0 < b < limit}),
        regions=regions,
        final_state=state,
    )


def is_balanced(text: str) -> bool:
    """Whether every fenced or markup code block opened in ``text`` is closed."""
    return scan_structure(text).balanced
