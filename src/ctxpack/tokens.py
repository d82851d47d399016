"""Token counting for chunk sizing and budget packing.

A ``TokenEstimator`` wraps a BPE encoding from ``tiktoken``. When the
encoding cannot be loaded (no cached vocabulary and no network) or a single
encode call fails, it falls back to a length heuristic of roughly four
characters per token. Instances hold no mutable state and are passed
explicitly to the components that need them.
"""

from __future__ import annotations

import logging

import tiktoken

logger = logging.getLogger("ctxpack.tokens")

DEFAULT_ENCODING = "cl100k_base"


def _load_encoding(name: str) -> tiktoken.Encoding | None:
    try:
        return tiktoken.get_encoding(name)
    except Exception as e:
        logger.warning(f"Could not load tiktoken encoding '{name}', using length heuristic: {e}")
        return None


class TokenEstimator:
    """Estimate, truncate and split text by token count."""

    # Rough heuristic: 1 token ≈ 4 characters
    CHARS_PER_TOKEN = 4

    def __init__(self, encoding_name: str | None = DEFAULT_ENCODING) -> None:
        self.encoding_name = encoding_name
        self._encoding = _load_encoding(encoding_name) if encoding_name else None

    @classmethod
    def heuristic(cls) -> TokenEstimator:
        """An estimator that never touches a BPE vocabulary."""
        return cls(encoding_name=None)

    @property
    def is_exact(self) -> bool:
        """Whether counts come from a real BPE encoding."""
        return self._encoding is not None

    def count(self, text: str) -> int:
        """Count tokens in ``text``. Empty text is 0 tokens, anything else at least 1."""
        if not text:
            return 0
        if self._encoding is not None:
            try:
                return len(self._encoding.encode(text, disallowed_special=()))
            except Exception:
                pass
        return self._approx(text)

    def truncate(self, text: str, max_tokens: int) -> str:
        """Cut ``text`` down to at most ``max_tokens`` tokens (prefix kept)."""
        if max_tokens <= 0 or not text:
            return ""
        if self._encoding is not None:
            try:
                ids = self._encoding.encode(text, disallowed_special=())
                if len(ids) <= max_tokens:
                    return text
                return self._encoding.decode(ids[:max_tokens])
            except Exception:
                pass
        if self._approx(text) <= max_tokens:
            return text
        return text[: max_tokens * self.CHARS_PER_TOKEN]

    def _approx(self, text: str) -> int:
        return max(1, len(text) // self.CHARS_PER_TOKEN)
