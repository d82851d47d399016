"""Turn source documents into chunk records."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ctxpack.chunking.chunker import ChunkingOptions, chunk_with_options
from ctxpack.index.models import Chunk, ChunkMeta, SourceDocument
from ctxpack.text import clean_markdown, normalise_newlines
from ctxpack.tokens import TokenEstimator

logger = logging.getLogger("ctxpack.chunking")

# Documents at or below this many tokens are kept whole
SINGLE_CHUNK_TOKENS = 1024


def chunk_documents(
    documents: Iterable[SourceDocument],
    estimator: TokenEstimator,
    options: ChunkingOptions | None = None,
    single_chunk_tokens: int = SINGLE_CHUNK_TOKENS,
) -> list[Chunk]:
    """Chunk every document and attach ids and token counts.

    Prose documents are cleaned (front matter stripped, blank runs collapsed)
    before chunking; code is only line-ending normalised. Chunk ids are
    ``"<source_path>#<n>"`` with ``n`` counting from 0 per document.
    """
    options = options or ChunkingOptions()
    out: list[Chunk] = []

    for doc in documents:
        text = normalise_newlines(doc.text) if doc.is_code else clean_markdown(doc.text)
        if not text.strip():
            continue

        if estimator.count(text) <= single_chunk_tokens:
            pieces = [text.strip()]
        else:
            pieces = chunk_with_options(text, options, estimator)

        for i, piece in enumerate(pieces):
            out.append(
                Chunk(
                    id=f"{doc.source_path}#{i}",
                    text=piece,
                    meta=ChunkMeta(
                        source_path=doc.source_path,
                        is_code=doc.is_code,
                        token_count=estimator.count(piece),
                    ),
                )
            )

    logger.info(f"Chunked to {len(out)} segments")
    return out
