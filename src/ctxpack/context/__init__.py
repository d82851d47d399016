"""Budgeted context assembly.

Packs ranked hits from the vector store into a token-bounded context string.

Usage:
    from ctxpack.context import Budget, ContextAssembler

    assembler = ContextAssembler(TokenEstimator())
    result = assembler.assemble(hits, Budget(num_ctx=8192))
    print(result.context)
"""

from ctxpack.context.engine import ContextAssembler
from ctxpack.context.models import (
    AssembledContext,
    Budget,
    ContextBlock,
    PageContext,
    PageDescriptor,
    SelectedChunk,
)
from ctxpack.context.pages import PageContextBuilder, page_query
from ctxpack.context.selector import select_informative_chunks

__all__ = [
    "AssembledContext",
    "Budget",
    "ContextAssembler",
    "ContextBlock",
    "PageContext",
    "PageContextBuilder",
    "PageDescriptor",
    "SelectedChunk",
    "page_query",
    "select_informative_chunks",
]
