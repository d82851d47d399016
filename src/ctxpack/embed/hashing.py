"""Local hashed bag-of-words embeddings.

No model download and no network: each token is hashed into one of
``dimension`` buckets with a sign, counts are summed and the vector is
L2-normalised. Good enough for lexical-overlap retrieval and for tests.
"""

from __future__ import annotations

import hashlib
import re

import numpy as np

from ctxpack.embed.base import Embedder


class HashingEmbedder(Embedder):
    """Deterministic feature-hashing embedder."""

    def __init__(self, dimension: int = 256) -> None:
        if dimension < 1:
            raise ValueError("dimension must be at least 1")
        self.dimension = dimension

    def embed(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(text).tolist() for text in texts]

    def _vector(self, text: str) -> np.ndarray:
        vec = np.zeros(self.dimension)
        for token in _tokenize(text):
            digest = hashlib.md5(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "little") % self.dimension
            sign = 1.0 if digest[4] & 1 else -1.0
            vec[bucket] += sign
        norm = np.linalg.norm(vec)
        if norm > 0:
            vec /= norm
        return vec


def _tokenize(text: str) -> list[str]:
    """Simple tokenizer that splits on non-alphanumeric and camelCase."""
    text = re.sub(r"([a-z])([A-Z])", r"\1 \2", text)
    text = text.replace("_", " ").replace(".", " ")
    return re.findall(r"[a-z0-9]{2,}", text.lower())
