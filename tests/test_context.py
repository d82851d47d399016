"""Tests for budgeted context assembly."""

from __future__ import annotations

import pytest

from ctxpack.context import AssembledContext, Budget, ContextAssembler
from ctxpack.context.engine import SEPARATOR, file_header, group_by_file
from ctxpack.tokens import TokenEstimator

from conftest import make_hit


@pytest.fixture
def assembler(estimator: TokenEstimator) -> ContextAssembler:
    return ContextAssembler(estimator)


class TestBudget:
    def test_effective_ceiling(self):
        budget = Budget(num_ctx=8192, context_share=0.45, prompt_reserve=300, safety_margin_pct=0.05)
        assert budget.raw_tokens == 3686
        assert budget.margin_tokens == 184
        assert budget.max_tokens == 3686 - 300 - 184

    def test_can_go_negative(self):
        assert Budget(num_ctx=100, prompt_reserve=300).max_tokens < 0

    def test_flat(self):
        budget = Budget.flat(2048, per_file_limit=2)
        assert budget.max_tokens == 2048
        assert budget.per_file_limit == 2

    def test_validation(self):
        with pytest.raises(ValueError):
            Budget(num_ctx=100, context_share=1.5)
        with pytest.raises(ValueError):
            Budget(num_ctx=100, per_file_limit=0)


class TestGrouping:
    def test_first_seen_order_best_first(self):
        hits = [
            make_hit("b#0", "b.py", "x", 0.9),
            make_hit("a#0", "a.py", "x", 0.8),
            make_hit("b#1", "b.py", "x", 0.95),
        ]
        groups = group_by_file(hits)
        assert list(groups) == ["b.py", "a.py"]
        assert [h.id for h in groups["b.py"]] == ["b#1", "b#0"]


class TestContextAssembler:
    def test_zero_budget(self, assembler: ContextAssembler):
        hits = [make_hit("a#0", "a.md", "some text", 0.9)]
        result = assembler.assemble(hits, Budget(num_ctx=0))
        assert result.context == ""
        assert result.tokens_used == 0
        assert result.files_used == []

    def test_negative_budget(self, assembler: ContextAssembler):
        hits = [make_hit("a#0", "a.md", "some text", 0.9)]
        result = assembler.assemble(hits, Budget(num_ctx=1000, prompt_reserve=5000))
        assert result == AssembledContext(max_tokens=result.max_tokens, hits_considered=1)

    def test_no_hits(self, assembler: ContextAssembler):
        result = assembler.assemble_within([], 500)
        assert result.context == ""
        assert result.files_used == []

    def test_single_block_format(self, assembler: ContextAssembler):
        hits = [make_hit("a#0", "a.md", "alpha", 0.9), make_hit("a#1", "a.md", "beta", 0.8)]
        result = assembler.assemble_within(hits, 500)
        assert result.context == file_header("a.md") + "alpha\n\nbeta"
        assert result.files_used == ["a.md"]
        assert result.blocks[0].chunk_ids == ["a#0", "a#1"]

    def test_blocks_joined_with_separator(self, assembler: ContextAssembler):
        hits = [make_hit("a#0", "a.md", "alpha", 0.9), make_hit("b#0", "b.md", "beta", 0.8)]
        result = assembler.assemble_within(hits, 500)
        assert result.context == (
            file_header("a.md") + "alpha" + SEPARATOR + file_header("b.md") + "beta"
        )

    def test_top_file_cannot_take_everything(self, assembler: ContextAssembler):
        hits = [
            make_hit("a#0", "a.md", "top chunk " * 10, 0.99),
            make_hit("a#1", "a.md", "second chunk " * 10, 0.98),
            make_hit("b#0", "b.md", "other file " * 10, 0.5),
        ]
        result = assembler.assemble(hits, Budget.flat(400, per_file_limit=1))
        assert result.files_used == ["a.md", "b.md"]
        assert result.blocks[0].chunk_ids == ["a#0"]
        assert not result.fallback_used

    def test_per_file_limit(self, assembler: ContextAssembler):
        hits = [make_hit(f"a#{i}", "a.md", f"chunk {i}", 1 - i / 10) for i in range(5)]
        result = assembler.assemble_within(hits, 1000, per_file_limit=3)
        assert result.blocks[0].chunk_ids == ["a#0", "a#1", "a#2"]

    def test_files_in_first_seen_order(self, assembler: ContextAssembler):
        hits = [
            make_hit("c#0", "c.md", "gamma", 0.9),
            make_hit("a#0", "a.md", "alpha", 0.8),
            make_hit("b#0", "b.md", "beta", 0.7),
        ]
        result = assembler.assemble_within(hits, 1000)
        assert result.files_used == ["c.md", "a.md", "b.md"]

    def test_never_exceeds_budget(self, estimator: TokenEstimator):
        assembler = ContextAssembler(estimator)
        hits = [
            make_hit(f"f{i % 4}#{i}", f"f{i % 4}.md", "word " * (5 + 7 * i), 1 - i / 50)
            for i in range(20)
        ]
        for max_tokens in (1, 5, 20, 40, 75, 150, 300, 600):
            result = assembler.assemble_within(hits, max_tokens)
            assert estimator.count(result.context) <= max_tokens
            assert result.tokens_used == estimator.count(result.context)
            assert len(result.files_used) == len(set(result.files_used))

    def test_file_stops_at_first_misfit(self, assembler: ContextAssembler):
        hits = [
            make_hit("a#0", "a.md", "x" * 40, 0.9),
            make_hit("a#1", "a.md", "y" * 400, 0.8),
            make_hit("a#2", "a.md", "z" * 4, 0.7),
        ]
        result = assembler.assemble_within(hits, 40)
        assert result.blocks[0].chunk_ids == ["a#0"]

    def test_fallback_when_nothing_fits(self, assembler: ContextAssembler):
        hits = [make_hit("a#0", "a.md", "b" * 400, 0.9)]
        result = assembler.assemble_within(hits, 90)
        assert result.fallback_used
        assert len(result.blocks) == 1
        assert 0 < result.tokens_used <= 90

    def test_tiny_chunk_that_fits_is_kept(self, assembler: ContextAssembler):
        # "a.md" header plus 60 chars is exactly 20 tokens; the joined "y" adds none
        hits = [
            make_hit("a#0", "a.md", "x" * 60, 0.9),
            make_hit("a#1", "a.md", "y", 0.8),
        ]
        result = assembler.assemble_within(hits, 20)
        assert result.blocks[0].chunk_ids == ["a#0", "a#1"]
        assert result.tokens_used == 20

    def test_fallback_keeps_chunk_whole_when_it_fits(
        self, assembler: ContextAssembler, monkeypatch
    ):
        monkeypatch.setattr(assembler, "_pack", lambda *args: [])
        result = assembler.assemble_within([make_hit("a#0", "a.md", "alpha", 0.9)], 100)
        assert result.fallback_used
        assert result.context == file_header("a.md") + "alpha"

    def test_fallback_trims_best_hit(self, assembler: ContextAssembler, estimator):
        hits = [
            make_hit("a#0", "a.md", "lower " * 200, 0.4),
            make_hit("b#0", "b.md", "best " * 200, 0.9),
        ]
        result = assembler.assemble_within(hits, 50)
        assert result.fallback_used
        assert result.files_used == ["b.md"]
        assert result.blocks[0].chunk_ids == ["b#0"]
        assert result.context.startswith(file_header("b.md") + "best")
        assert 0 < estimator.count(result.context) <= 50

    def test_summary(self, assembler: ContextAssembler):
        hits = [make_hit("a#0", "a.md", "alpha", 0.9)]
        summary = assembler.assemble_within(hits, 100).summary()
        assert "Files: 1" in summary
        assert "a.md" in summary

    def test_dump_uses_camel_case(self, assembler: ContextAssembler):
        hits = [make_hit("a#0", "a.md", "alpha", 0.9)]
        data = assembler.assemble_within(hits, 100).model_dump(by_alias=True)
        assert data["tokensUsed"] > 0
        assert data["filesUsed"] == ["a.md"]
        assert "blocks" not in data

    def test_safety_pass_drops_trailing_blocks(self):
        class Superadditive(TokenEstimator):
            """Text holding more than one file header costs triple."""

            def count(self, text: str) -> int:
                base = super().count(text)
                return base * 3 if text.count("## File Path:") > 1 else base

        est = Superadditive(encoding_name=None)
        hits = [
            make_hit("a#0", "a.md", "alpha " * 10, 0.9),
            make_hit("b#0", "b.md", "beta " * 10, 0.8),
        ]
        result = ContextAssembler(est).assemble_within(hits, 60)
        assert result.files_used == ["a.md"]
        assert result.tokens_used == 20
        assert not result.fallback_used
