"""Token estimation and token-budgeted batching.

Responsibilities:
- Estimate token counts for source texts through a pluggable estimator.
- Derive per-request input budgets from model output ceilings.
- Group texts into batches that fit the input budget.
- Split very large text arrays into fixed-size request chunks.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Protocol, Sequence


_REASONING_INPUT_DIVISOR = 4
_REQUEST_CHUNK_FILL_RATIO = 0.8


class TokenEstimator(Protocol):
    """Estimate how many model tokens a text occupies."""

    def estimate(self, text: str) -> int:
        """Return the estimated token count for one text."""


@dataclass(frozen=True, slots=True)
class CharacterRatioEstimator:
    """Estimate tokens as a fixed number of characters per token, rounded up."""

    characters_per_token: int = 2

    def estimate(self, text: str) -> int:
        """Return `ceil(len(text) / characters_per_token)`."""

        return math.ceil(len(text) / self.characters_per_token)


def max_input_tokens(max_output_tokens: int, uses_extended_reasoning: bool) -> int:
    """Return the input-token budget for one request.

    Extended reasoning spends most of the output allowance on thinking, so the
    input budget shrinks to a quarter of the output ceiling.
    """

    if uses_extended_reasoning:
        return max_output_tokens // _REASONING_INPUT_DIVISOR
    return max_output_tokens


@dataclass(slots=True)
class TokenBatcher:
    """Greedy batcher that keeps every multi-text batch within the input budget."""

    estimator: TokenEstimator = field(default_factory=CharacterRatioEstimator)

    def batch(self, texts: Sequence[str], max_input_tokens: int) -> list[list[str]]:
        """Group texts into ordered batches under `max_input_tokens`.

        A text whose own estimate exceeds the budget is emitted alone and never split.
        """

        if not texts:
            return []
        estimates = [self.estimator.estimate(text) for text in texts]
        if sum(estimates) <= max_input_tokens:
            return [list(texts)]

        batches: list[list[str]] = []
        current: list[str] = []
        current_tokens = 0
        for text, tokens in zip(texts, estimates):
            if current_tokens + tokens > max_input_tokens and current:
                batches.append(current)
                current = []
                current_tokens = 0
            current.append(text)
            current_tokens += tokens
            if current_tokens > max_input_tokens:
                batches.append(current)
                current = []
                current_tokens = 0
        if current:
            batches.append(current)
        return batches


def plan_request_chunks(
    texts: Sequence[str],
    max_output_tokens: int,
    estimator: TokenEstimator | None = None,
) -> list[list[str]]:
    """Split a text array into fixed-size chunks for independent translate calls.

    When the whole array fits `max_output_tokens` it is returned as one chunk;
    otherwise each chunk holds roughly 80% of the budget worth of texts, at
    least one text each.
    """

    if not texts:
        return []
    active_estimator = estimator if estimator is not None else CharacterRatioEstimator()
    total_tokens = sum(active_estimator.estimate(text) for text in texts)
    if total_tokens <= max_output_tokens:
        return [list(texts)]

    chunk_size = max(
        1,
        math.floor(len(texts) * (max_output_tokens * _REQUEST_CHUNK_FILL_RATIO) / total_tokens),
    )
    return [list(texts[start : start + chunk_size]) for start in range(0, len(texts), chunk_size)]
