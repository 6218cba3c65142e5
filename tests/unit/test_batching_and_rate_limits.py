"""Unit tests for token estimation, batching, request chunking, and rate limiting."""

from __future__ import annotations

import asyncio

import pytest

from tests.fakes import RecordingSleeper
from transbatch.llm.rate_limiter import RateLimiterRegistry, TokenBucket
from transbatch.llm.tokens import (
    CharacterRatioEstimator,
    TokenBatcher,
    max_input_tokens,
    plan_request_chunks,
)


def test_character_ratio_estimator_rounds_up() -> None:
    """Two characters should count as one token, rounded up."""

    estimator = CharacterRatioEstimator()

    assert estimator.estimate("") == 0
    assert estimator.estimate("abc") == 2
    assert estimator.estimate("abcd") == 2


def test_input_budget_shrinks_for_extended_reasoning() -> None:
    """Reasoning mode should leave a quarter of the output ceiling for input."""

    assert max_input_tokens(8192, uses_extended_reasoning=False) == 8192
    assert max_input_tokens(8192, uses_extended_reasoning=True) == 2048


def test_batcher_returns_one_batch_when_everything_fits() -> None:
    """A total estimate within budget should produce a single batch."""

    assert TokenBatcher().batch(["aa", "bb", "cc"], max_input_tokens=3) == [["aa", "bb", "cc"]]
    assert TokenBatcher().batch([], max_input_tokens=3) == []


def test_batcher_keeps_multi_text_batches_within_budget() -> None:
    """Greedy batches should never exceed the budget unless they hold one text."""

    texts = ["a" * 6, "b" * 6, "c" * 30, "d" * 4, "e" * 4, "f" * 4]
    estimator = CharacterRatioEstimator()

    batches = TokenBatcher(estimator).batch(texts, max_input_tokens=8)

    assert batches == [["a" * 6, "b" * 6], ["c" * 30], ["d" * 4, "e" * 4, "f" * 4]]
    for batch in batches:
        if len(batch) > 1:
            assert sum(estimator.estimate(text) for text in batch) <= 8
    assert [text for batch in batches for text in batch] == texts


def test_request_chunks_use_eighty_percent_of_the_budget() -> None:
    """Twenty-five 10-token texts under a 100-token ceiling should form four chunks."""

    texts = [f"{index:02d}" + "x" * 18 for index in range(25)]

    chunks = plan_request_chunks(texts, max_output_tokens=100)

    assert [len(chunk) for chunk in chunks] == [8, 8, 8, 1]
    assert [text for chunk in chunks for text in chunk] == texts
    assert plan_request_chunks(texts[:5], max_output_tokens=100) == [texts[:5]]
    assert plan_request_chunks([], max_output_tokens=100) == []


def test_token_bucket_waits_for_refill_when_empty() -> None:
    """An empty bucket should sleep until one token has been regained."""

    state = {"now": 0.0}
    sleeper = RecordingSleeper()

    async def _sleep(seconds: float) -> None:
        await sleeper(seconds)
        state["now"] += seconds

    bucket = TokenBucket(capacity=2, clock=lambda: state["now"], sleeper=_sleep)

    async def _acquire_three() -> list[float]:
        return [await bucket.acquire() for _ in range(3)]

    waits = asyncio.run(_acquire_three())

    assert waits[:2] == [0.0, 0.0]
    assert waits[2] == pytest.approx(30.0)
    assert sum(sleeper.delays) == pytest.approx(30.0)


def test_token_bucket_rejects_non_positive_capacity() -> None:
    """Capacity must be positive."""

    with pytest.raises(ValueError, match="capacity"):
        TokenBucket(capacity=0)


def test_registry_keeps_the_first_configured_rate_per_model() -> None:
    """Later configure calls should not resize an existing bucket."""

    registry = RateLimiterRegistry(default_requests_per_minute=100)

    first = registry.configure("model-a", 10)
    second = registry.configure("model-a", 500)
    default_bucket = registry.configure("model-b")

    assert first is second
    assert first.capacity == 10
    assert default_bucket.capacity == 100
    assert registry.bucket("missing") is None


def test_registry_serves_concurrent_waiters_in_arrival_order() -> None:
    """Concurrent acquirers should be granted tokens first-come first-served."""

    state = {"now": 0.0}
    order: list[str] = []

    async def _sleep(seconds: float) -> None:
        state["now"] += seconds
        await asyncio.sleep(0)

    registry = RateLimiterRegistry(clock=lambda: state["now"], sleeper=_sleep)
    registry.configure("model", 1)

    async def _worker(name: str) -> None:
        await registry.acquire("model")
        order.append(name)

    async def _run() -> None:
        await asyncio.gather(*(_worker(name) for name in ("first", "second", "third")))

    asyncio.run(_run())

    assert order == ["first", "second", "third"]
