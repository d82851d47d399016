"""Data models for chunks, stored records and search hits.

Persisted records use camelCase keys (``sourcePath``, ``isCode``,
``tokenCount``); Python code uses the snake_case attribute names.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SourceDocument(BaseModel):
    """One raw input text plus where it came from."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source_path: str = Field(alias="sourcePath")
    text: str
    is_code: bool = Field(default=False, alias="isCode")


class ChunkMeta(BaseModel):
    """Metadata carried by every chunk."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source_path: str = Field(alias="sourcePath")
    is_code: bool = Field(default=False, alias="isCode")
    token_count: int = Field(default=0, ge=0, alias="tokenCount")  # computed once at chunk time


class Chunk(BaseModel):
    """A bounded slice of a source text."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    text: str
    meta: ChunkMeta

    @property
    def source_path(self) -> str:
        return self.meta.source_path


class EmbeddedChunk(Chunk):
    """A chunk with its embedding vector, as persisted in the store."""

    embedding: list[float] = Field(default_factory=list)

    @classmethod
    def from_chunk(cls, chunk: Chunk, embedding: list[float]) -> EmbeddedChunk:
        return cls(id=chunk.id, text=chunk.text, meta=chunk.meta, embedding=list(embedding))


class Hit(EmbeddedChunk):
    """A stored chunk scored against a query vector."""

    score: float = 0.0
