"""Per-page context assembly against one shared vector store.

Each page gets its own query built from its title, description and target
files, its own top-K search and its own flat token ceiling. Pages are
processed one after another; nothing but the store file is shared.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from ctxpack.context.engine import ContextAssembler
from ctxpack.context.models import Budget, PageContext, PageDescriptor
from ctxpack.embed.base import Embedder
from ctxpack.index.store import VectorStore
from ctxpack.tokens import TokenEstimator

logger = logging.getLogger("ctxpack.context")

# Files reported per page
MAX_PAGE_FILES = 8


def page_query(page: PageDescriptor) -> str:
    """The retrieval query for a page."""
    desc = f" — {page.description}" if page.description else ""
    files = ", ".join(page.target_files)
    return f"{page.title}{desc} — focus:{page.id} — files:{files}"


class PageContextBuilder:
    """Builds a compact, budgeted context per page."""

    def __init__(
        self,
        store: VectorStore,
        embedder: Embedder,
        estimator: TokenEstimator | None = None,
        max_tokens: int = 2048,
        k: int = 24,
        per_file_limit: int = 3,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.assembler = ContextAssembler(estimator)
        self.max_tokens = max_tokens
        self.k = k
        self.per_file_limit = per_file_limit

    def build_page(self, page: PageDescriptor | Mapping[str, Any]) -> PageContext:
        """Embed the page query, search the store and assemble its context."""
        if not isinstance(page, PageDescriptor):
            page = PageDescriptor.model_validate(page)

        query_vector = self.embedder.embed_one(page_query(page))
        hits = self.store.search(query_vector, self.k)
        assembled = self.assembler.assemble(hits, Budget.flat(self.max_tokens, self.per_file_limit))

        return PageContext(
            page_id=page.id,
            title=page.title,
            context=assembled.context,
            files=assembled.files_used[:MAX_PAGE_FILES],
            tokens_used=assembled.tokens_used,
        )

    def build(self, pages: Iterable[PageDescriptor | Mapping[str, Any]]) -> list[PageContext]:
        """Build contexts for ``pages`` sequentially, in order."""
        results: list[PageContext] = []
        for page in pages:
            pc = self.build_page(page)
            results.append(pc)
            logger.info(
                f"Built context for page={pc.page_id} "
                f"({pc.tokens_used} tokens, files={len(pc.files)})"
            )
        return results
