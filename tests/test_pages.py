"""Tests for per-page context assembly."""

from __future__ import annotations

from pathlib import Path

import pytest

from ctxpack.context import PageContextBuilder, PageDescriptor, page_query
from ctxpack.context.pages import MAX_PAGE_FILES
from ctxpack.index.models import Chunk, ChunkMeta
from ctxpack.index.store import VectorStore
from ctxpack.tokens import TokenEstimator

from conftest import KeywordEmbedder


@pytest.fixture
def many_files_store(tmp_path: Path, keyword_embedder: KeywordEmbedder) -> VectorStore:
    est = TokenEstimator.heuristic()
    chunks = []
    for i in range(12):
        text = f"cache notes for file {i} " + "storage " * i
        chunks.append(
            Chunk(
                id=f"f{i:02d}.md#0",
                text=text,
                meta=ChunkMeta(source_path=f"f{i:02d}.md", token_count=est.count(text)),
            )
        )
    store = VectorStore(tmp_path / "store.json")
    store.build(chunks, keyword_embedder)
    return store


class TestPageDescriptor:
    def test_id_defaults_to_slug(self):
        page = PageDescriptor(title="Storage Layer")
        assert page.id == "storage-layer"

    def test_target_files_aliases(self):
        page = PageDescriptor.model_validate({"title": "T", "targetFiles": ["a.py"]})
        assert page.target_files == ["a.py"]
        page = PageDescriptor.model_validate({"title": "T", "relevant_files": ["b.py"]})
        assert page.target_files == ["b.py"]

    def test_query(self):
        page = PageDescriptor(
            id="cache", title="Cache", description="How reads work", target_files=["a.py", "b.py"]
        )
        assert page_query(page) == "Cache — How reads work — focus:cache — files:a.py, b.py"

    def test_query_without_description(self):
        page = PageDescriptor(title="Cache")
        assert page_query(page) == "Cache — focus:cache — files:"


class TestPageContextBuilder:
    def test_files_capped(self, many_files_store, keyword_embedder):
        builder = PageContextBuilder(
            many_files_store, keyword_embedder, TokenEstimator.heuristic(), max_tokens=5000, k=24
        )
        result = builder.build_page(PageDescriptor(title="Cache"))
        assert len(result.files) == MAX_PAGE_FILES
        assert result.context.count("## File Path:") == 12

    def test_respects_ceiling(self, many_files_store, keyword_embedder):
        est = TokenEstimator.heuristic()
        builder = PageContextBuilder(many_files_store, keyword_embedder, est, max_tokens=40, k=24)
        result = builder.build_page({"title": "Storage", "targetFiles": ["f11.md"]})
        assert 0 < result.tokens_used <= 40
        assert est.count(result.context) == result.tokens_used

    def test_zero_ceiling(self, many_files_store, keyword_embedder):
        builder = PageContextBuilder(many_files_store, keyword_embedder, max_tokens=0)
        result = builder.build_page(PageDescriptor(title="Storage"))
        assert result.context == ""
        assert result.files == []

    def test_build_sequential_in_order(self, many_files_store, keyword_embedder):
        builder = PageContextBuilder(
            many_files_store, keyword_embedder, TokenEstimator.heuristic(), max_tokens=200
        )
        pages = [PageDescriptor(title="Storage"), {"id": "c", "title": "Cache"}]
        results = builder.build(pages)
        assert [r.page_id for r in results] == ["storage", "c"]
        assert len(keyword_embedder.calls) == 1 + 2  # one build batch, one query per page

    def test_missing_store(self, tmp_path: Path, keyword_embedder):
        builder = PageContextBuilder(VectorStore(tmp_path / "none.json"), keyword_embedder)
        result = builder.build_page(PageDescriptor(title="Storage"))
        assert result.context == ""
        assert result.tokens_used == 0

    def test_dump_uses_camel_case(self, many_files_store, keyword_embedder):
        builder = PageContextBuilder(many_files_store, keyword_embedder, TokenEstimator.heuristic())
        data = builder.build_page(PageDescriptor(title="Cache")).model_dump(by_alias=True)
        assert set(data) == {"pageId", "title", "context", "files", "tokensUsed"}

    def test_page_ceiling_is_a_flat_budget(
        self, many_files_store, keyword_embedder, monkeypatch
    ):
        from ctxpack.context.engine import ContextAssembler

        budgets = []
        original = ContextAssembler.assemble

        def recording(self, hits, budget):
            budgets.append(budget)
            return original(self, hits, budget)

        monkeypatch.setattr(ContextAssembler, "assemble", recording)
        builder = PageContextBuilder(
            many_files_store, keyword_embedder, TokenEstimator.heuristic(),
            max_tokens=40, per_file_limit=2,
        )
        builder.build_page(PageDescriptor(title="Cache"))
        assert len(budgets) == 1
        assert budgets[0].max_tokens == 40
        assert budgets[0].per_file_limit == 2
