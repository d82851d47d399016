"""Structure-aware text chunking."""

from ctxpack.chunking.chunker import ChunkingOptions, ChunkMode, chunk, chunk_with_options
from ctxpack.chunking.documents import chunk_documents
from ctxpack.chunking.structure import StructureScan, is_balanced, scan_structure

__all__ = [
    "ChunkMode",
    "ChunkingOptions",
    "StructureScan",
    "chunk",
    "chunk_documents",
    "chunk_with_options",
    "is_balanced",
    "scan_structure",
]
