"""Small text helpers shared by the chunker, reader and selector."""

from __future__ import annotations

import re

_WORD_RE = re.compile(r"\S+")
_LINK_RE = re.compile(r"\[[^\]]+\]\([^)]+\)|https?://", re.IGNORECASE)
_FRONTMATTER_RE = re.compile(r"\A---\n.*?\n(?:---|\.\.\.)\n", re.DOTALL)
_BLANK_RUN_RE = re.compile(r"\n[ \t]*(?:\n[ \t]*){2,}")


def normalise_newlines(text: str) -> str:
    """Convert CRLF and lone CR line endings to LF."""
    if "\r" in text:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
    return text


def word_spans(text: str) -> list[tuple[int, int]]:
    """Character offsets of every whitespace-delimited word in ``text``."""
    return [m.span() for m in _WORD_RE.finditer(text)]


def link_density(text: str) -> float:
    """Fraction of lines containing a markdown link or a bare URL."""
    lines = normalise_newlines(text).split("\n")
    linkish = sum(1 for line in lines if _LINK_RE.search(line))
    return linkish / len(lines)


def strip_frontmatter(text: str) -> str:
    """Remove a leading YAML front matter block."""
    return _FRONTMATTER_RE.sub("", normalise_newlines(text), count=1)


def collapse_blank_runs(text: str) -> str:
    """Collapse three or more consecutive blank lines into two."""
    return _BLANK_RUN_RE.sub("\n\n\n", normalise_newlines(text))


def clean_markdown(text: str) -> str:
    """Front matter stripped, blank runs collapsed, outer whitespace trimmed."""
    return collapse_blank_runs(strip_frontmatter(text)).strip()


def slugify(name: str) -> str:
    """Lowercase, non-alphanumerics collapsed to single dashes."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
