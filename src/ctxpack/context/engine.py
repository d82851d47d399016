"""Budgeted context assembly over ranked hits.

Algorithm:
  1. Group hits by source file. Files keep the order in which they first
     appear in the ranked hit list; chunks within a file are sorted by score.
  2. Walk the files. Each file contributes up to ``per_file_limit`` chunks
     rendered as one block under a ``## File Path:`` header. Every chunk is
     admitted only if the measured cost of the grown block (plus the block
     separator) still fits what is left of the budget. A file stops at its
     limit or at its first chunk that does not fit; the pass stops once the
     budget is spent.
  3. If no file fitted at all, fall back to the single best hit, trimmed to
     the budget when it is too large on its own.
  4. Re-measure the joined string and drop whole blocks from the end while
     it exceeds the budget (token counts of a join are not exactly additive).

Taking files in first-seen order rather than best-file-first keeps the
output stable with respect to the ranking and spreads the budget across
files instead of letting the top file take all of it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ctxpack.context.models import AssembledContext, Budget, ContextBlock
from ctxpack.index.models import Hit
from ctxpack.tokens import TokenEstimator

logger = logging.getLogger("ctxpack.context")

SEPARATOR = f"\n\n{'-' * 10}\n\n"
CHUNK_JOINER = "\n\n"

# Tokens held back when hard-trimming the fallback chunk
FALLBACK_TRIM_MARGIN = 32


def file_header(source_path: str) -> str:
    return f"## File Path: {source_path}\n\n"


def group_by_file(hits: Iterable[Hit]) -> dict[str, list[Hit]]:
    """Hits grouped by source path in first-seen order, best score first."""
    groups: dict[str, list[Hit]] = {}
    for hit in hits:
        groups.setdefault(hit.meta.source_path, []).append(hit)
    for group in groups.values():
        group.sort(key=lambda h: h.score, reverse=True)
    return groups


class ContextAssembler:
    """Packs ranked hits into a token-bounded context string.

    Usage:
        assembler = ContextAssembler(TokenEstimator())
        result = assembler.assemble(hits, Budget(num_ctx=8192))
        prompt_context = result.context
    """

    def __init__(
        self, estimator: TokenEstimator | None = None, separator: str = SEPARATOR
    ) -> None:
        self.estimator = estimator or TokenEstimator()
        self.separator = separator

    # -------------------------------------------------------------------
    # Main entry points
    # -------------------------------------------------------------------

    def assemble(self, hits: Iterable[Hit], budget: Budget) -> AssembledContext:
        """Assemble context for ``hits`` within ``budget``.

        Never raises for budget reasons: a budget with no room yields an
        empty context, a budget too small for any block yields one trimmed
        block.
        """
        logger.info(
            f"Context planning: raw={budget.raw_tokens}, reserve={budget.prompt_reserve}, "
            f"margin={budget.margin_tokens} -> max={budget.max_tokens}"
        )
        return self.assemble_within(hits, budget.max_tokens, budget.per_file_limit)

    def assemble_within(
        self, hits: Iterable[Hit], max_tokens: int, per_file_limit: int = 3
    ) -> AssembledContext:
        """Assemble context under a flat ceiling of ``max_tokens``."""
        hits = list(hits)

        if max_tokens <= 0:
            logger.warning(
                "Context budget is zero or negative after reserves; skipping retrieval context."
            )
            return AssembledContext(max_tokens=max_tokens, hits_considered=len(hits))
        if not hits:
            return AssembledContext(max_tokens=max_tokens)

        blocks = self._pack(group_by_file(hits), max_tokens, per_file_limit)

        fallback_used = False
        if not blocks:
            blocks = [self._fallback(hits, max_tokens)]
            fallback_used = True

        context = self._join(blocks)
        while blocks and self.estimator.count(context) > max_tokens:
            dropped = blocks.pop()
            logger.debug(f"Dropped block {dropped.source_path} after re-measuring")
            context = self._join(blocks)

        tokens = self.estimator.count(context)
        files_used = list(dict.fromkeys(b.source_path for b in blocks))
        logger.info(
            f"Context budget used: {tokens}/{max_tokens} tokens across {len(files_used)} files"
        )
        return AssembledContext(
            context=context,
            tokens_used=tokens,
            files_used=files_used,
            blocks=blocks,
            max_tokens=max_tokens,
            hits_considered=len(hits),
            fallback_used=fallback_used,
        )

    # -------------------------------------------------------------------
    # Packing
    # -------------------------------------------------------------------

    def _pack(
        self, groups: dict[str, list[Hit]], max_tokens: int, per_file_limit: int
    ) -> list[ContextBlock]:
        blocks: list[ContextBlock] = []
        committed = 0

        for source_path, group in groups.items():
            if committed >= max_tokens:
                break

            header = file_header(source_path)
            prefix = self.separator if blocks else ""
            body = ""
            chunk_ids: list[str] = []
            block_cost = 0

            for hit in group:
                if len(chunk_ids) >= per_file_limit:
                    break
                candidate = f"{body}{CHUNK_JOINER}{hit.text}" if body else hit.text
                cost = self.estimator.count(prefix + header + candidate)
                if committed + cost > max_tokens:
                    break
                body = candidate
                block_cost = cost
                chunk_ids.append(hit.id)

            if chunk_ids:
                blocks.append(
                    ContextBlock(source_path=source_path, content=header + body, chunk_ids=chunk_ids)
                )
                committed += block_cost

        return blocks

    def _fallback(self, hits: list[Hit], max_tokens: int) -> ContextBlock:
        """The single best hit, whole if it fits, otherwise trimmed to fit."""
        top = max(hits, key=lambda h: h.score)
        single = file_header(top.meta.source_path) + top.text

        if self.estimator.count(single) <= max_tokens:
            content = single
        else:
            target = max_tokens - min(FALLBACK_TRIM_MARGIN, max_tokens // 4)
            content = self.estimator.truncate(single, target)
            while target > 0 and self.estimator.count(content) > max_tokens:
                target -= 1
                content = self.estimator.truncate(single, target)
            logger.warning(
                f"No file fitted the budget; trimmed top chunk {top.id} to {target} tokens"
            )

        return ContextBlock(source_path=top.meta.source_path, content=content, chunk_ids=[top.id])

    def _join(self, blocks: list[ContextBlock]) -> str:
        return self.separator.join(b.content for b in blocks)
