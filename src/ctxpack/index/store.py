"""Persistent vector store backed by a single JSON snapshot.

A build embeds every chunk and then replaces the snapshot wholesale; nothing
is merged with what was there before. Searches reload the file every time,
so a search never sees stale records from an earlier build.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path

import numpy as np
from pydantic import TypeAdapter, ValidationError

from ctxpack.embed.base import Embedder
from ctxpack.exceptions import EmbeddingError, StoreError
from ctxpack.index.models import Chunk, EmbeddedChunk, Hit

logger = logging.getLogger("ctxpack.store")

# Guards cosine similarity against zero-length vectors
EPSILON = 1e-9

_RECORDS = TypeAdapter(list[EmbeddedChunk])


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b| + eps) for two equal-length vectors."""
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    return float(np.dot(va, vb) / (np.linalg.norm(va) * np.linalg.norm(vb) + EPSILON))


class VectorStore:
    """Stores embedded chunks in one file and ranks them by cosine similarity."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(
        self,
        chunks: Sequence[Chunk],
        embedder: Embedder,
        batch_size: int = 64,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> list[EmbeddedChunk]:
        """Embed ``chunks`` and overwrite the snapshot with the result.

        Embedder exceptions propagate unchanged. The file is only written
        once every batch has been embedded.

        Args:
            chunks: Chunks to embed, in store order.
            embedder: Embedding provider, called once per batch.
            batch_size: Texts per embedding call.
            progress_callback: Optional callback(done, total) after each batch.
        """
        batch_size = max(1, batch_size)
        records: list[EmbeddedChunk] = []

        for i in range(0, len(chunks), batch_size):
            batch = chunks[i:i + batch_size]
            vectors = embedder.embed([c.text for c in batch])
            if len(vectors) != len(batch):
                raise EmbeddingError(
                    f"Embedder returned {len(vectors)} vectors for {len(batch)} texts"
                )
            records.extend(EmbeddedChunk.from_chunk(c, v) for c, v in zip(batch, vectors))
            if progress_callback:
                progress_callback(len(records), len(chunks))

        self._write(records)
        logger.info(f"Vector store saved -> {self.path} ({len(records)} vecs)")
        return records

    def _write(self, records: list[EmbeddedChunk]) -> None:
        """Write all records via a temp file and an atomic rename."""
        payload = _RECORDS.dump_json(records, by_alias=True)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
        except OSError as e:
            raise StoreError(f"Cannot write vector store {self.path}: {e}") from e
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise StoreError(f"Cannot write vector store {self.path}: {e}") from e

    # ------------------------------------------------------------------
    # Load / search
    # ------------------------------------------------------------------

    def load(self) -> list[EmbeddedChunk]:
        """Load all records. A missing or unreadable snapshot is empty."""
        try:
            raw = self.path.read_bytes()
        except OSError:
            return []
        try:
            return _RECORDS.validate_json(raw)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Ignoring corrupt vector store {self.path}: {e}")
            return []

    def search(self, query_vector: Sequence[float], k: int) -> list[Hit]:
        """Top-``k`` records by cosine similarity to ``query_vector``.

        Records whose embedding length differs from the query's are skipped.
        Ties keep store order.
        """
        if k <= 0 or len(query_vector) == 0:
            return []

        dim = len(query_vector)
        records = [r for r in self.load() if len(r.embedding) == dim]
        if not records:
            return []

        matrix = np.asarray([r.embedding for r in records], dtype=float)
        q = np.asarray(query_vector, dtype=float)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
        scores = matrix @ q / (norms + EPSILON)

        order = sorted(range(len(records)), key=lambda i: -scores[i])[:k]
        return [
            Hit(
                id=records[i].id,
                text=records[i].text,
                meta=records[i].meta,
                embedding=records[i].embedding,
                score=float(scores[i]),
            )
            for i in order
        ]


def search_store(path: str | Path, query_vector: Sequence[float], k: int) -> list[Hit]:
    """Search the snapshot at ``path``."""
    return VectorStore(path).search(query_vector, k)
