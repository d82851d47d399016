"""ctxpack - retrieve and pack relevant text into a token-bounded LLM context."""

__version__ = "0.1.0"
