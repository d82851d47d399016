"""Data models for budgeted context assembly."""

from __future__ import annotations

import math

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from ctxpack.text import slugify


class Budget(BaseModel):
    """Token budget for one assembled context.

    The usable ceiling is the context share of the model window, minus a
    reserve for the rest of the prompt, minus a safety margin that absorbs
    tokenizer mismatch between the estimator and the target model.
    """

    num_ctx: int = Field(ge=0)
    context_share: float = Field(default=0.45, ge=0.0, le=1.0)
    per_file_limit: int = Field(default=3, ge=1)
    prompt_reserve: int = Field(default=300, ge=0)
    safety_margin_pct: float = Field(default=0.05, ge=0.0, lt=1.0)

    @classmethod
    def flat(cls, max_tokens: int, per_file_limit: int = 3) -> Budget:
        """A budget whose ceiling is exactly ``max_tokens`` (no reserve, no margin)."""
        return cls(
            num_ctx=max(0, max_tokens),
            context_share=1.0,
            per_file_limit=per_file_limit,
            prompt_reserve=0,
            safety_margin_pct=0.0,
        )

    @property
    def raw_tokens(self) -> int:
        return math.floor(self.num_ctx * self.context_share)

    @property
    def margin_tokens(self) -> int:
        return math.floor(self.raw_tokens * self.safety_margin_pct)

    @property
    def max_tokens(self) -> int:
        """Effective ceiling; zero or negative means no room for context."""
        return self.raw_tokens - self.prompt_reserve - self.margin_tokens


class ContextBlock(BaseModel):
    """One or more chunks from the same file, rendered under a file header."""

    source_path: str
    content: str
    chunk_ids: list[str] = Field(default_factory=list)


class AssembledContext(BaseModel):
    """The context string plus bookkeeping about how it was packed."""

    model_config = ConfigDict(populate_by_name=True)

    context: str = ""
    tokens_used: int = Field(default=0, alias="tokensUsed")
    files_used: list[str] = Field(default_factory=list, alias="filesUsed")
    blocks: list[ContextBlock] = Field(default_factory=list, exclude=True)
    max_tokens: int = Field(default=0, alias="maxTokens")
    hits_considered: int = Field(default=0, alias="hitsConsidered")
    fallback_used: bool = Field(default=False, alias="fallbackUsed")

    @property
    def budget_used_pct(self) -> float:
        return round(self.tokens_used / max(self.max_tokens, 1) * 100, 1)

    def summary(self) -> str:
        """Human-readable summary of what's in the context."""
        lines = [
            f"Tokens: {self.tokens_used:,} / {max(self.max_tokens, 0):,} ({self.budget_used_pct:.0f}%)",
            f"Files: {len(self.files_used)} (from {self.hits_considered} hits)",
        ]
        if self.fallback_used:
            lines.append("Fallback: single best chunk")
        for block in self.blocks:
            lines.append(f"  > {block.source_path} [{len(block.chunk_ids)} chunk(s)]")
        return "\n".join(lines)


class PageDescriptor(BaseModel):
    """A page to build context for."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    title: str
    description: str | None = None
    target_files: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("target_files", "targetFiles", "relevant_files"),
    )

    @model_validator(mode="after")
    def _default_id(self) -> PageDescriptor:
        if not self.id:
            self.id = slugify(self.title)
        return self


class PageContext(BaseModel):
    """Context assembled for one page."""

    model_config = ConfigDict(populate_by_name=True)

    page_id: str = Field(alias="pageId")
    title: str
    context: str = ""
    files: list[str] = Field(default_factory=list)
    tokens_used: int = Field(default=0, alias="tokensUsed")


class SelectedChunk(BaseModel):
    """A chunk picked by the selector, with its similarity to the query."""

    text: str
    score: float
