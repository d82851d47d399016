"""Embedding providers."""

from ctxpack.embed.base import Embedder
from ctxpack.embed.factory import create_embedder
from ctxpack.embed.hashing import HashingEmbedder

__all__ = ["Embedder", "HashingEmbedder", "create_embedder"]
