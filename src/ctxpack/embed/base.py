"""Base embedding provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Embedder(ABC):
    """Turns texts into vectors, one vector per text, in input order."""

    @abstractmethod
    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts."""
        ...

    def embed_one(self, text: str) -> list[float]:
        """Embed a single text."""
        return self.embed([text])[0]
