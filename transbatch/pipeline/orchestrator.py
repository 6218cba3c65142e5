"""Batched translation orchestration.

Responsibilities:
- Normalize inputs and resolve cached translations before any model call.
- Batch remaining texts under the token budget and request them sequentially.
- Reconcile parsed entries into the output, the cache, and the example buffer.
- Retry failed and omitted texts until resolved or the failure limit is hit.

Key types:
- `TranslationOrchestrator`: drives one `translate` call end to end.
- `OrchestratorSettings`: failure, backoff, and pass limits.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator, Mapping, Sequence

from ..cache.manager import TranslationCache
from ..errors import TranslationAbortedError
from ..fewshot.store import ExampleStore
from ..llm.api_keys import cycle_api_keys
from ..llm.http_client import ProviderError
from ..llm.model_client import ModelClientBuilder
from ..llm.prompts import PromptCodec
from ..llm.rate_limiter import RateLimiterRegistry
from ..llm.responses import ResponseCodec
from ..llm.tokens import TokenBatcher, max_input_tokens
from ..models.datatypes import BatchOutcome, TranslationRequest
from ..provider_factory import ProviderFactory
from ..telemetry.logger import EventLogger
from ..telemetry.usage_tracker import UsageTracker
from ..text.normalizer import TextNormalizer, normalize_cache_key
from ..text.tagging import tag_texts


ProgressCallback = Callable[[list[str]], None]


@dataclass(frozen=True, slots=True)
class OrchestratorSettings:
    """Retry limits for one translate call.

    Attributes:
        max_consecutive_failures: Failed requests in a row that abort the call.
        throttle_backoff_seconds: Sleep after a rate-limit or quota rejection.
        max_passes: Optional bound on batching passes; unbounded when `None`.
    """

    max_consecutive_failures: int = 3
    throttle_backoff_seconds: float = 10.0
    max_passes: int | None = None


class TranslationOrchestrator:
    """Translate text arrays through cache, batching, and model requests."""

    def __init__(
        self,
        *,
        cache: TranslationCache,
        example_store: ExampleStore,
        rate_limiters: RateLimiterRegistry,
        provider_factory: ProviderFactory,
        prompt_codec: PromptCodec | None = None,
        response_codec: ResponseCodec | None = None,
        batcher: TokenBatcher | None = None,
        normalizer: TextNormalizer | None = None,
        settings: OrchestratorSettings | None = None,
        usage: UsageTracker | None = None,
        logger: EventLogger | None = None,
        sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._cache = cache
        self._example_store = example_store
        self._rate_limiters = rate_limiters
        self._provider_factory = provider_factory
        self._prompt_codec = prompt_codec or PromptCodec()
        self._response_codec = response_codec or ResponseCodec()
        self._batcher = batcher or TokenBatcher()
        self._normalizer = normalizer or TextNormalizer()
        self._settings = settings or OrchestratorSettings()
        self._usage = usage or UsageTracker()
        self._logger = logger or EventLogger()
        self._sleeper = sleeper

    @property
    def usage(self) -> UsageTracker:
        """Return the usage counters shared by every call."""

        return self._usage

    async def translate(
        self,
        model_id: str,
        request: TranslationRequest,
        progress: ProgressCallback | None = None,
    ) -> list[str]:
        """Translate `request.source_texts` and return outputs in input order.

        Texts that stay unresolved after the last pass are returned unchanged.

        Raises:
            TranslationAbortedError: After the configured number of consecutive
                failed requests.
            PromptRenderError: If the prompt cannot be rendered for a batch.
            ValueError: If model work is needed but no API key is available.
        """

        if not request.source_texts:
            return []
        self._rate_limiters.configure(model_id, request.requests_per_minute)
        texts = [self._normalizer.normalize(text) for text in request.source_texts]

        cached = await self._cache.get_many(texts)
        output: list[str | None] = [None] * len(texts)
        remaining: dict[str, list[int]] = {}
        for index, text in enumerate(texts):
            value = cached.get(text)
            if value is not None:
                output[index] = value
            else:
                remaining.setdefault(text, []).append(index)

        missed = sum(len(indices) for indices in remaining.values())
        self._usage.add_cache_lookup(hits=len(texts) - missed, misses=missed)
        self._logger.info(
            "translate",
            "cache_lookup",
            model=model_id,
            texts=len(texts),
            hits=len(texts) - missed,
            distinct_misses=len(remaining),
        )

        if remaining:
            await self._translate_remaining(
                model_id, request, remaining, output, progress
            )
        return self._render_output(request.source_texts, output)

    async def _translate_remaining(
        self,
        model_id: str,
        request: TranslationRequest,
        remaining: dict[str, list[int]],
        output: list[str | None],
        progress: ProgressCallback | None,
    ) -> None:
        """Run batching passes until no work remains or a limit ends the call."""

        builder = self._provider_factory.resolve(model_id)
        api_keys = cycle_api_keys(request.api_key)
        budget = max_input_tokens(request.max_output_token_count, request.use_thinking)
        consecutive_failures = 0
        passes = 0

        while remaining:
            if self._settings.max_passes is not None and passes >= self._settings.max_passes:
                self._logger.warning(
                    "translate", "pass_limit", model=model_id, unresolved=len(remaining)
                )
                return
            passes += 1

            for batch in self._batcher.batch(list(remaining), budget):
                positions = {text: remaining.pop(text) for text in batch if text in remaining}
                if not positions:
                    continue

                outcome = await self._request_batch(
                    model_id, request, builder, api_keys, batch, positions
                )
                if outcome.failed:
                    consecutive_failures += 1
                    self._usage.add_failed_call()
                    remaining.update(positions)
                    if consecutive_failures >= self._settings.max_consecutive_failures:
                        await self._abort(
                            model_id, request, batch, remaining, consecutive_failures, outcome
                        )
                    if outcome.throttled:
                        self._logger.warning(
                            "translate",
                            "throttled",
                            model=model_id,
                            backoff_seconds=self._settings.throttle_backoff_seconds,
                        )
                        await self._sleeper(self._settings.throttle_backoff_seconds)
                    continue

                consecutive_failures = 0
                self._reconcile(request, outcome, output)
                if outcome.entries:
                    await self._cache.set_many(
                        {entry.source: entry.translated_text for entry in outcome.entries},
                        success=True,
                        file_info=request.file_info,
                        model=model_id,
                    )
                    if progress is not None:
                        progress(self._render_output(request.source_texts, output))

                omitted = outcome.omitted()
                for text in omitted:
                    remaining[text] = positions[text]
                if omitted:
                    self._logger.debug(
                        "translate", "omitted", model=model_id, count=len(omitted)
                    )

    async def _request_batch(
        self,
        model_id: str,
        request: TranslationRequest,
        builder: ModelClientBuilder,
        api_keys: Iterator[str],
        batch: Sequence[str],
        positions: Mapping[str, Sequence[int]],
    ) -> BatchOutcome:
        """Send one batch and decode the response, capturing request failures."""

        await self._rate_limiters.acquire(model_id)
        chat_block = self._prompt_codec.chat_block(
            content=tag_texts(batch),
            source_language=request.source_language,
            example=self._example_store.get_example(request.source_language),
            template=request.prompt_preset_content,
            use_thinking=request.use_thinking,
        )
        try:
            client = builder(model_id, next(api_keys), request.max_output_token_count)
            response = await client.generate_content(
                contents=chat_block.contents,
                system_instruction=chat_block.system_instruction,
            )
        except Exception as exc:
            throttled = isinstance(exc, ProviderError) and exc.is_throttled
            self._logger.warning(
                "translate",
                "request_failed",
                model=model_id,
                batch_size=len(batch),
                error_type=type(exc).__name__,
                failure_kind=getattr(exc, "failure_kind", "unknown"),
                throttled=throttled,
            )
            return BatchOutcome(batch=tuple(batch), error=exc, throttled=throttled)

        self._usage.add_model_call(response.usage_metadata)
        entries = self._response_codec.decode(response, batch, positions)
        self._logger.debug(
            "translate",
            "batch_complete",
            model=model_id,
            batch_size=len(batch),
            parsed=len(entries),
            finish_reason=response.finish_reason,
        )
        return BatchOutcome(batch=tuple(batch), entries=tuple(entries))

    def _reconcile(
        self,
        request: TranslationRequest,
        outcome: BatchOutcome,
        output: list[str | None],
    ) -> None:
        """Fold parsed entries into the output and the rolling examples."""

        if not outcome.entries:
            return
        for entry in outcome.entries:
            for index in entry.indices:
                output[index] = entry.translated_text
        self._example_store.append_current_example(
            request.source_language,
            [entry.source for entry in outcome.entries],
            [entry.translated_text for entry in outcome.entries],
        )

    async def _abort(
        self,
        model_id: str,
        request: TranslationRequest,
        batch: Sequence[str],
        remaining: Mapping[str, Sequence[int]],
        failure_count: int,
        outcome: BatchOutcome,
    ) -> None:
        """Persist the failing batch as failed records and raise."""

        await self._cache.set_many(
            {text: "" for text in dict.fromkeys(batch)},
            success=False,
            file_info=request.file_info,
            model=model_id,
        )
        self._logger.error(
            "translate",
            "aborted",
            error_type=type(outcome.error).__name__,
            model=model_id,
            failures=failure_count,
            unresolved=len(remaining),
        )
        raise TranslationAbortedError(
            failure_count=failure_count,
            unresolved_texts=list(remaining),
            last_error=outcome.error,
        ) from outcome.error

    def _render_output(
        self, source_texts: Sequence[str], output: Sequence[str | None]
    ) -> list[str]:
        """Denormalize translations; blank and unresolved positions keep the caller's text."""

        return [
            source
            if value is None or not normalize_cache_key(source)
            else self._normalizer.denormalize(value)
            for source, value in zip(source_texts, output)
        ]
