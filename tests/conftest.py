"""Shared test fixtures for ctxpack."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ctxpack.embed.base import Embedder
from ctxpack.index.models import ChunkMeta, Hit
from ctxpack.tokens import TokenEstimator


class KeywordEmbedder(Embedder):
    """Embeds texts as keyword-count vectors; fully deterministic."""

    def __init__(self, vocabulary: list[str]):
        self.vocabulary = vocabulary
        self.calls: list[list[str]] = []

    def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        out = []
        for text in texts:
            lowered = text.lower()
            out.append([float(lowered.count(word)) for word in self.vocabulary])
        return out


class FailingEmbedder(Embedder):
    """Raises on every call."""

    def embed(self, texts: list[str]) -> list[list[float]]:
        raise RuntimeError("embedding service unavailable")


def make_hit(
    chunk_id: str,
    source_path: str,
    text: str,
    score: float,
    estimator: TokenEstimator | None = None,
) -> Hit:
    """Build a search hit without going through a store."""
    estimator = estimator or TokenEstimator.heuristic()
    return Hit(
        id=chunk_id,
        text=text,
        meta=ChunkMeta(
            source_path=source_path, is_code=False, token_count=estimator.count(text)
        ),
        embedding=[1.0],
        score=score,
    )


@pytest.fixture
def estimator() -> TokenEstimator:
    """A length-heuristic estimator (1 token per 4 characters)."""
    return TokenEstimator.heuristic()


@pytest.fixture
def keyword_embedder() -> KeywordEmbedder:
    return KeywordEmbedder(["cache", "retry", "storage", "parser", "token"])


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary project directory with docs and code."""
    proj = tmp_path / "proj"
    proj.mkdir()

    (proj / "README.md").write_text(
        """---
title: Demo
---

# Demo service

The demo service keeps a small cache in front of the storage layer.
Reads go to the cache first and fall back to storage on a miss.

## Retries

Failed storage calls retry with exponential backoff. The retry policy
is configured per client and defaults to three attempts.
"""
    )

    docs = proj / "docs"
    docs.mkdir()
    (docs / "parser.md").write_text(
        """# Parser

The parser turns request bodies into typed commands. Every token is
validated before the command reaches the cache or the storage layer.

```python
def parse(body):
    return Command.from_json(body)
```
"""
    )

    src = proj / "src"
    src.mkdir()
    (src / "cache.py").write_text(
        '''"""In-memory cache with storage fallback."""


class Cache:
    def __init__(self, storage):
        self.storage = storage
        self.items = {}

    def get(self, key):
        if key not in self.items:
            self.items[key] = self.storage.load(key)
        return self.items[key]
'''
    )
    (src / "retry.py").write_text(
        '''"""Retry helpers."""

import time


def retry(fn, attempts=3):
    for i in range(attempts):
        try:
            return fn()
        except IOError:
            time.sleep(2 ** i)
    raise RuntimeError("retry attempts exhausted")
'''
    )

    # Not indexed: unknown extension and excluded directory
    (proj / "logo.png").write_bytes(b"\x89PNG\r\n")
    nm = proj / "node_modules" / "dep"
    nm.mkdir(parents=True)
    (nm / "index.js").write_text("module.exports = {};\n")

    return proj


@pytest.fixture
def configured_project(tmp_project: Path) -> Path:
    """A project with a config that avoids network access."""
    cp_dir = tmp_project / ".ctxpack"
    cp_dir.mkdir()
    (cp_dir / "config.json").write_text(
        json.dumps(
            {
                "name": "proj",
                "chunking": {"encoding": None, "chunk_size_tokens": 40, "chunk_overlap_tokens": 5},
                "embedding": {"provider": "hashing", "dimension": 64},
            }
        )
    )
    return tmp_project
