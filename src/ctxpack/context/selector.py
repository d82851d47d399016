"""Pick a small fixed number of the most relevant chunks.

Unlike the assembler there is no token budget here: the selector filters
out short and link-heavy chunks (catalogues, badge walls, link farms) before
spending an embedding call on them, then ranks what is left by cosine
similarity to the query.
"""

from __future__ import annotations

from collections.abc import Sequence

from ctxpack.context.models import SelectedChunk
from ctxpack.embed.base import Embedder
from ctxpack.index.store import cosine_similarity
from ctxpack.text import link_density

MIN_CHUNK_LENGTH = 200
MAX_LINK_DENSITY = 0.35


def select_informative_chunks(
    chunks: Sequence[str],
    query: str,
    embedder: Embedder,
    top_k: int = 6,
    min_length: int = MIN_CHUNK_LENGTH,
    max_link_density: float = MAX_LINK_DENSITY,
) -> list[SelectedChunk]:
    """Top-``top_k`` chunks by similarity to ``query`` after noise filtering.

    The query is embedded once and all surviving candidates once. Returns
    ``[]`` without calling the embedder when nothing survives the filter.
    """
    if not chunks or top_k <= 0:
        return []

    candidates = [
        t
        for t in (c.strip() for c in chunks)
        if len(t) > min_length and link_density(t) < max_link_density
    ]
    if not candidates:
        return []

    query_vector = embedder.embed_one(query)
    vectors = embedder.embed(candidates)

    scored = [
        SelectedChunk(text=text, score=cosine_similarity(vec, query_vector))
        for text, vec in zip(candidates, vectors)
        if len(vec) == len(query_vector)
    ]
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored[:top_k]
