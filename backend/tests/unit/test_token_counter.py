"""
Unit tests for tiktoken-backed token counting and cost estimation.
"""

from __future__ import annotations

import pytest

from devinsight.utils.token_counter import (
    DEFAULT_PRICING,
    FAMILY_PRICING,
    count_tokens,
    estimate_cost,
    pricing_for,
)


class TestCountTokens:
    def test_empty(self) -> None:
        assert count_tokens("") == 0

    def test_uses_bpe_not_character_length(self) -> None:
        # Long runs of a common word compress far below len/4.
        text = "hello " * 200
        assert 0 < count_tokens(text) < len(text) // 4

    def test_counts_grow_with_text(self) -> None:
        assert count_tokens("def main():\n    return 1\n" * 10) > count_tokens("def main():\n    return 1\n")

    def test_special_token_text_is_encoded(self) -> None:
        assert count_tokens("marker <|endoftext|> inside source") > 0


class TestEstimateCost:
    @pytest.mark.parametrize(
        ("model", "family"),
        [
            ("claude-sonnet-4-20250514", "sonnet"),
            ("claude-opus-4-1", "opus"),
            ("claude-haiku-4-5-20251001", "haiku"),
        ],
    )
    def test_family_lookup(self, model: str, family: str) -> None:
        assert pricing_for(model) is FAMILY_PRICING[family]

    def test_unknown_model_uses_default(self) -> None:
        assert pricing_for("some-other-model") is DEFAULT_PRICING

    def test_cost_per_million(self) -> None:
        assert estimate_cost(1_000_000, 1_000_000, "claude-sonnet-4-20250514") == pytest.approx(18.0)
        assert estimate_cost(0, 0, "claude-opus-4") == 0
