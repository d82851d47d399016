"""Tests for token estimation."""

from __future__ import annotations

import pytest

from ctxpack import tokens
from ctxpack.tokens import TokenEstimator


class TestHeuristicEstimator:
    def test_empty_is_zero(self, estimator: TokenEstimator):
        assert estimator.count("") == 0

    def test_short_text_is_at_least_one(self, estimator: TokenEstimator):
        assert estimator.count("a") == 1
        assert estimator.count("abc") == 1

    def test_four_chars_per_token(self, estimator: TokenEstimator):
        assert estimator.count("x" * 400) == 100

    def test_not_exact(self, estimator: TokenEstimator):
        assert not estimator.is_exact

    def test_truncate_fits(self, estimator: TokenEstimator):
        text = "word " * 200
        cut = estimator.truncate(text, 10)
        assert estimator.count(cut) <= 10
        assert text.startswith(cut)

    def test_truncate_short_text_unchanged(self, estimator: TokenEstimator):
        assert estimator.truncate("hello", 10) == "hello"

    def test_truncate_zero(self, estimator: TokenEstimator):
        assert estimator.truncate("hello world", 0) == ""


class TestEncodingFallback:
    def test_unloadable_encoding_falls_back(self, monkeypatch):
        def boom(name):
            raise OSError("no network")

        monkeypatch.setattr(tokens.tiktoken, "get_encoding", boom)
        est = TokenEstimator("cl100k_base")
        assert not est.is_exact
        assert est.count("x" * 40) == 10

    def test_encode_failure_falls_back(self):
        class BrokenEncoding:
            def encode(self, text, **kwargs):
                raise ValueError("bad input")

        est = TokenEstimator.heuristic()
        est._encoding = BrokenEncoding()
        assert est.count("x" * 40) == 10
        assert est.truncate("x" * 40, 5) == "x" * 20


class TestBPEEstimator:
    @pytest.fixture
    def bpe(self) -> TokenEstimator:
        est = TokenEstimator()
        if not est.is_exact:
            pytest.skip("tiktoken vocabulary not available offline")
        return est

    def test_count_matches_encoding(self, bpe: TokenEstimator):
        text = "The quick brown fox jumps over the lazy dog."
        assert bpe.count(text) == len(bpe._encoding.encode(text))

    def test_special_tokens_are_plain_text(self, bpe: TokenEstimator):
        assert bpe.count("<|endoftext|>") > 0

    def test_truncate(self, bpe: TokenEstimator):
        text = "alpha beta gamma delta " * 50
        cut = bpe.truncate(text, 12)
        assert bpe.count(cut) <= 12
        assert text.startswith(cut)
