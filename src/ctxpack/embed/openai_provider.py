"""OpenAI-compatible embedding provider (OpenAI, Ollama, vLLM, etc.)."""

from __future__ import annotations

from typing import Any

from ctxpack.embed.base import Embedder


class OpenAIEmbedder(Embedder):
    """Calls an OpenAI-compatible ``/embeddings`` endpoint."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self._client = None

    def _get_client(self):
        if self._client is None:
            try:
                from openai import OpenAI
            except ImportError:
                from ctxpack.exceptions import ProviderNotAvailableError
                raise ProviderNotAvailableError("openai", "openai")

            kwargs: dict[str, Any] = {}
            if self.api_key:
                kwargs["api_key"] = self.api_key
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self._client = OpenAI(**kwargs)
        return self._client

    def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        client = self._get_client()
        response = client.embeddings.create(model=self.model, input=texts)
        data = sorted(response.data, key=lambda d: d.index)
        return [list(d.embedding) for d in data]
