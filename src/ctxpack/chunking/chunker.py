"""Deterministic sliding-window chunker.

Text is split into whitespace-delimited words and windowed by token count:
each window takes as many whole words as fit in ``chunk_size_tokens`` under
the supplied ``TokenEstimator``, and consecutive windows share up to
``chunk_overlap_tokens`` tokens. A word that alone exceeds the window is cut
into token-sized pieces. Chunk text is always an exact slice of the
normalised input, so code layout survives.

In ``sentence`` mode, window ends are pulled back to the nearest structural
boundary (heading, paragraph end, code block edge) within a small slack. A
repair pass then makes sure no chunk starts or ends inside a fenced or
markup code block, and a final pass re-scans every chunk and merges any that
still read as an unclosed block.
"""

from __future__ import annotations

import bisect
import logging
from enum import Enum

from pydantic import BaseModel

from ctxpack.chunking.structure import StructureScan, is_balanced, scan_structure
from ctxpack.text import normalise_newlines, word_spans
from ctxpack.tokens import TokenEstimator

logger = logging.getLogger("ctxpack.chunking")

# Upper bound on how far (in words) a window end may be snapped
MAX_SNAP_SLACK = 32


class ChunkMode(str, Enum):
    """Windowing strategy."""

    SENTENCE = "sentence"  # Snap window ends to structural boundaries
    TOKEN = "token"  # Pure sliding window


class ChunkingOptions(BaseModel):
    """Window size and overlap for ``chunk``."""

    chunk_size_tokens: int = 768
    chunk_overlap_tokens: int = 80
    mode: ChunkMode = ChunkMode.SENTENCE


def chunk(
    text: str,
    chunk_size_tokens: int = 768,
    chunk_overlap_tokens: int = 80,
    mode: ChunkMode | str = ChunkMode.SENTENCE,
    estimator: TokenEstimator | None = None,
) -> list[str]:
    """Split ``text`` into ordered, overlapping, structure-safe chunks.

    Args:
        text: Raw text. Line endings are normalised and outer whitespace trimmed.
        chunk_size_tokens: Window size in tokens (coerced to at least 1).
        chunk_overlap_tokens: Tokens shared by consecutive windows, clamped to
            ``[0, size - 1]``.
        mode: ``"sentence"`` to bias window ends to structural boundaries,
            ``"token"`` for a pure sliding window.
        estimator: Token counter used to size windows. Defaults to the
            length heuristic.

    Returns:
        Non-empty chunk strings in document order. Empty input gives ``[]``.
        A chunk only exceeds the window size when it had to grow to hold a
        whole code block.
    """
    mode = ChunkMode(mode)
    size = max(1, int(chunk_size_tokens))
    overlap = max(0, min(int(chunk_overlap_tokens), size - 1))
    estimator = estimator or TokenEstimator.heuristic()

    text = normalise_newlines(text).strip()
    if not text:
        return []

    spans = _split_long_words(text, word_spans(text), size, estimator)
    word_starts = [s for s, _ in spans]
    costs = [estimator.count(text[s:e]) for s, e in spans]

    scan = _safe_scan(text)
    regions = _word_regions(scan, word_starts) if scan else []
    boundaries: list[int] = []
    if mode is ChunkMode.SENTENCE and scan:
        boundaries = _word_boundaries(scan, word_starts)

    windows = _slide(text, spans, costs, size, overlap, boundaries, estimator)
    windows = _repair(windows, regions)

    chunks: list[str] = []
    for cs, ce in _balance(text, spans, windows):
        piece = text[cs:ce]
        if piece.strip():
            chunks.append(piece)

    logger.debug(
        f"Chunked {len(spans)} words into {len(chunks)} chunks "
        f"(size={size}, overlap={overlap}, mode={mode.value})"
    )
    return chunks


def chunk_with_options(
    text: str, options: ChunkingOptions, estimator: TokenEstimator | None = None
) -> list[str]:
    """``chunk`` driven by a ``ChunkingOptions`` model."""
    return chunk(
        text,
        chunk_size_tokens=options.chunk_size_tokens,
        chunk_overlap_tokens=options.chunk_overlap_tokens,
        mode=options.mode,
        estimator=estimator,
    )


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------

def _safe_scan(text: str) -> StructureScan | None:
    try:
        return scan_structure(text)
    except Exception as e:
        logger.warning(f"Structure scan failed, falling back to plain windowing: {e}")
        return None


def _split_long_words(
    text: str, spans: list[tuple[int, int]], size: int, estimator: TokenEstimator
) -> list[tuple[int, int]]:
    """Cut any word longer than ``size`` tokens into pieces that fit."""
    out: list[tuple[int, int]] = []
    for s, e in spans:
        if estimator.count(text[s:e]) <= size:
            out.append((s, e))
            continue
        while s < e:
            rest = text[s:e]
            head = estimator.truncate(rest, size)
            # A BPE cut can split a multi-byte character
            if not head or not rest.startswith(head):
                head = rest[: size * TokenEstimator.CHARS_PER_TOKEN]
            out.append((s, s + len(head)))
            s += len(head)
    return out


def _word_boundaries(scan: StructureScan, word_starts: list[int]) -> list[int]:
    """Map character boundaries to word indices (number of words before them)."""
    idx = {bisect.bisect_left(word_starts, b) for b in scan.boundaries}
    return sorted(i for i in idx if 0 < i < len(word_starts))


def _word_regions(scan: StructureScan, word_starts: list[int]) -> list[tuple[int, int]]:
    """Map character regions to half-open word index ranges."""
    out: list[tuple[int, int]] = []
    for cs, ce in scan.regions:
        ws = bisect.bisect_left(word_starts, cs)
        we = bisect.bisect_left(word_starts, ce)
        if we > ws:
            out.append((ws, we))
    return out


def _slide(
    text: str,
    spans: list[tuple[int, int]],
    costs: list[int],
    size: int,
    overlap: int,
    boundaries: list[int],
    estimator: TokenEstimator,
) -> list[tuple[int, int]]:
    """Token-sized windows over the words, ends optionally snapped back.

    A window takes words while their summed cost fits ``size``, then drops
    trailing words until the joined slice itself counts within ``size``. The
    next window starts as far back as ``overlap`` tokens allow, but always
    after the previous start, so the windows cover every word.
    """
    n = len(spans)
    slack = min(size // 4, MAX_SNAP_SLACK)
    windows: list[tuple[int, int]] = []
    start = 0
    while start < n:
        end, total = start + 1, costs[start]
        while end < n and total + costs[end] <= size:
            total += costs[end]
            end += 1
        while end - start > 1:
            if estimator.count(text[spans[start][0]:spans[end - 1][1]]) <= size:
                break
            end -= 1
        if end < n and boundaries:
            end = _snap(end, boundaries, slack, lo=start + 1)
        windows.append((start, end))
        if end >= n:
            break
        nxt, shared = end, 0
        while nxt - 1 > start and shared + costs[nxt - 1] <= overlap:
            shared += costs[nxt - 1]
            nxt -= 1
        start = nxt
    return windows


def _snap(end: int, boundaries: list[int], slack: int, lo: int) -> int:
    """Latest boundary in ``[max(lo, end - slack), end]``, else ``end``."""
    i = bisect.bisect_right(boundaries, end) - 1
    if i >= 0 and boundaries[i] >= max(lo, end - slack):
        return boundaries[i]
    return end


def _containing_region(pos: int, regions: list[tuple[int, int]], starts: list[int]) -> tuple[int, int] | None:
    """The region strictly containing word index ``pos``, if any."""
    i = bisect.bisect_left(starts, pos) - 1
    if i >= 0:
        ws, we = regions[i]
        if ws < pos < we:
            return regions[i]
    return None


def _repair(windows: list[tuple[int, int]], regions: list[tuple[int, int]]) -> list[tuple[int, int]]:
    """Push window edges out of code regions and drop windows already covered.

    A start inside a region moves to the region end; the previous window
    necessarily reaches that far. An end inside a region is merged forward to
    the region end, and later windows that the merged one now covers are
    skipped.
    """
    if not regions:
        return windows
    starts = [ws for ws, _ in regions]
    out: list[tuple[int, int]] = []
    for a, b in windows:
        region = _containing_region(a, regions, starts)
        if region:
            a = region[1]
        region = _containing_region(b, regions, starts)
        if region:
            b = region[1]
        if a >= b:
            continue
        if out and b <= out[-1][1]:
            continue
        out.append((a, b))
    return out


def _balance(
    text: str, spans: list[tuple[int, int]], windows: list[tuple[int, int]]
) -> list[tuple[int, int]]:
    """Turn word windows into character ranges that each scan as balanced.

    A window that starts mid-line can open with a marker that is not a fence
    in the full text (an inline or over-indented run of backticks). Such a
    window is widened back to the start of its line, which restores the
    surrounding context. Anything still unbalanced is merged with the
    following windows until it closes or the text runs out. Earlier ranges
    swallowed by a widened one are dropped.
    """
    out: list[tuple[int, int]] = []
    i = 0
    while i < len(windows):
        a, b = windows[i]
        cs, ce = spans[a][0], spans[b - 1][1]
        if not is_balanced(text[cs:ce]):
            cs = text.rfind("\n", 0, cs) + 1
        while not is_balanced(text[cs:ce]) and i + 1 < len(windows):
            i += 1
            ce = spans[windows[i][1] - 1][1]
        i += 1
        if out and ce <= out[-1][1]:
            continue
        while out and out[-1][0] >= cs:
            out.pop()
        out.append((cs, ce))
    return out
