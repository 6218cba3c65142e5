"""Usage accounting for model calls and cache effectiveness.

Responsibilities:
- Count model requests, failures, and cache hits/misses per engine session.
- Accumulate token usage reported by providers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping


@dataclass(slots=True)
class UsageTracker:
    """Collect and summarize session-level usage counters."""

    model_calls: int = 0
    failed_calls: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    prompt_tokens: int = 0
    output_tokens: int = 0

    def add_cache_lookup(self, hits: int, misses: int) -> None:
        """Add one cache lookup result."""

        self.cache_hits += max(0, hits)
        self.cache_misses += max(0, misses)

    def add_model_call(self, usage_metadata: Mapping[str, object] | None = None) -> None:
        """Add one successful model call and its reported token usage."""

        self.model_calls += 1
        if not usage_metadata:
            return
        self.prompt_tokens += _as_count(usage_metadata.get("prompt_tokens"))
        self.output_tokens += _as_count(usage_metadata.get("output_tokens"))

    def add_failed_call(self) -> None:
        """Add one failed model call."""

        self.model_calls += 1
        self.failed_calls += 1

    def hit_rate(self) -> float:
        """Return cache hit ratio in range [0.0, 1.0]."""

        total = self.cache_hits + self.cache_misses
        if total == 0:
            return 0.0
        return self.cache_hits / total

    def summary(self) -> dict[str, float]:
        """Return a summary dictionary for reporting."""

        return {
            "model_calls": self.model_calls,
            "failed_calls": self.failed_calls,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "cache_hit_rate": round(self.hit_rate(), 4),
            "prompt_tokens": self.prompt_tokens,
            "output_tokens": self.output_tokens,
        }


def _as_count(value: object) -> int:
    """Coerce a provider token count into a non-negative integer."""

    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0
    return max(0, int(value))
