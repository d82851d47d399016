"""Chunk records, the vector store and the directory reader."""

from ctxpack.index.models import Chunk, ChunkMeta, EmbeddedChunk, Hit, SourceDocument
from ctxpack.index.store import VectorStore, cosine_similarity, search_store

__all__ = [
    "Chunk",
    "ChunkMeta",
    "EmbeddedChunk",
    "Hit",
    "SourceDocument",
    "VectorStore",
    "cosine_similarity",
    "search_store",
]
