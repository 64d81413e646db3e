"""
Token counting and cost estimation for readiness prompts.

Counts use tiktoken's ``cl100k_base`` encoding. Claude's tokenizer is not
published, so the figure is an estimate within a few percent, which is
enough for logging prompt sizes and budgeting truncation.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

import tiktoken


ENCODING_NAME = "cl100k_base"


@lru_cache(maxsize=1)
def _encoding() -> tiktoken.Encoding:
    return tiktoken.get_encoding(ENCODING_NAME)


def count_tokens(text: str) -> int:
    """Number of tokens in ``text`` (0 for empty input)."""
    if not text:
        return 0
    # Repository text can legitimately contain "<|endoftext|>"; encode it as plain text.
    return len(_encoding().encode(text, disallowed_special=()))


@dataclass(frozen=True)
class ModelPricing:
    """USD per million tokens."""

    input_per_million: float
    output_per_million: float

    def cost(self, input_tokens: int, output_tokens: int) -> float:
        return (
            input_tokens * self.input_per_million + output_tokens * self.output_per_million
        ) / 1_000_000


# Keyed by model family so dated snapshots ("claude-sonnet-4-...") resolve.
FAMILY_PRICING: dict[str, ModelPricing] = {
    "opus": ModelPricing(15.0, 75.0),
    "sonnet": ModelPricing(3.0, 15.0),
    "haiku": ModelPricing(1.0, 5.0),
}
DEFAULT_PRICING = FAMILY_PRICING["sonnet"]


def pricing_for(model: str) -> ModelPricing:
    name = model.lower()
    for family, pricing in FAMILY_PRICING.items():
        if family in name:
            return pricing
    return DEFAULT_PRICING


def estimate_cost(input_tokens: int, output_tokens: int, model: str) -> float:
    """Estimated USD cost of one request against ``model``."""
    return pricing_for(model).cost(input_tokens, output_tokens)
