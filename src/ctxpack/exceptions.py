"""Custom exceptions for ctxpack."""


class CtxPackError(Exception):
    """Base exception for all ctxpack errors."""


class ConfigError(CtxPackError):
    """Configuration-related errors."""


class EmbeddingError(CtxPackError):
    """Embedding provider errors."""


class StoreError(CtxPackError):
    """Vector store errors."""


class ProviderNotAvailableError(EmbeddingError):
    """Raised when an embedding provider's SDK is not installed."""

    def __init__(self, provider: str, package: str):
        super().__init__(
            f"Provider '{provider}' requires the '{package}' package. "
            f"Install it with: pip install ctxpack[{provider}]"
        )
