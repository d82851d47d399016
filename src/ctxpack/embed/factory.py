"""Factory for creating embedding providers from configuration."""

from __future__ import annotations

from ctxpack.config import EmbeddingConfig
from ctxpack.embed.base import Embedder

OLLAMA_BASE_URL = "http://localhost:11434/v1"


def create_embedder(config: EmbeddingConfig) -> Embedder:
    """Create an embedding provider from configuration.

    Args:
        config: Embedding configuration with provider, model, etc.

    Returns:
        An initialized embedder.

    Raises:
        ValueError: If the provider is unknown.
    """
    provider = config.provider.lower()

    if provider == "hashing":
        from ctxpack.embed.hashing import HashingEmbedder

        return HashingEmbedder(dimension=config.dimension)
    elif provider == "openai" or provider == "ollama":
        from ctxpack.embed.openai_provider import OpenAIEmbedder

        base_url = config.base_url
        api_key = config.api_key
        if provider == "ollama":
            base_url = base_url or OLLAMA_BASE_URL
            # Ollama ignores the key but the client insists on one
            api_key = api_key or "ollama"
        return OpenAIEmbedder(model=config.model, api_key=api_key, base_url=base_url)
    else:
        raise ValueError(
            f"Unknown embedding provider: '{provider}'. "
            f"Supported providers: hashing, openai, ollama"
        )
