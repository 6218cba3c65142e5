"""Engine wiring for a translation session.

Responsibilities:
- Build the durable store, cache tiers, example store, and rate limiters once.
- Share them with every orchestrator call through an explicit context.
- Expose a convenience `translate` entry point for resolved runtime settings.

Key types:
- `EngineContext`: components shared by concurrent translate calls.
- `TranslationEngine`: owner of an `EngineContext` for one session.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Sequence

from .cache.manager import TranslationCache
from .cache.memory import MemoryTranslationCache
from .config import EngineConfig, TranslationRuntimeConfig
from .errors import PresetNotFoundError
from .fewshot.store import ExampleStore
from .llm.prompts import PromptCodec
from .llm.rate_limiter import RateLimiterRegistry
from .models.datatypes import FileInfo, TranslationRequest
from .pipeline.orchestrator import (
    OrchestratorSettings,
    ProgressCallback,
    TranslationOrchestrator,
)
from .pipeline.service import TextArrayTranslator
from .provider_factory import ProviderFactory
from .storage.database import Database
from .storage.presets import ExamplePresetRepository
from .storage.prompt_presets import PromptPresetRepository
from .storage.translations import SqliteTranslationStore
from .telemetry.logger import EventLogger
from .telemetry.usage_tracker import UsageTracker


@dataclass(slots=True)
class EngineContext:
    """Components shared across translate calls of one session."""

    config: EngineConfig
    database: Database
    cache: TranslationCache
    example_store: ExampleStore
    prompt_presets: PromptPresetRepository
    rate_limiters: RateLimiterRegistry
    provider_factory: ProviderFactory
    usage: UsageTracker
    logger: EventLogger


class TranslationEngine:
    """Session facade that owns shared state and runs translate calls."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        provider_factory: ProviderFactory | None = None,
        logger: EventLogger | None = None,
        sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        active_config = config if config is not None else EngineConfig()
        active_config.validate()
        active_logger = logger or EventLogger()

        database = Database.from_path(active_config.database_path)
        cache = TranslationCache(
            SqliteTranslationStore(database),
            MemoryTranslationCache(
                max_items=active_config.memory_cache_max_items,
                ttl_seconds=active_config.memory_cache_ttl_seconds,
            ),
            logger=active_logger,
        )
        example_store = ExampleStore(
            ExamplePresetRepository(database),
            max_chars=active_config.example_max_chars,
            logger=active_logger,
        )
        example_store.initialize()
        prompt_presets = PromptPresetRepository(database)
        prompt_presets.ensure_default()

        self.context = EngineContext(
            config=active_config,
            database=database,
            cache=cache,
            example_store=example_store,
            prompt_presets=prompt_presets,
            rate_limiters=RateLimiterRegistry(
                default_requests_per_minute=active_config.default_requests_per_minute,
                sleeper=sleeper,
            ),
            provider_factory=provider_factory or ProviderFactory(active_config),
            usage=UsageTracker(),
            logger=active_logger,
        )
        self.orchestrator = TranslationOrchestrator(
            cache=cache,
            example_store=example_store,
            rate_limiters=self.context.rate_limiters,
            provider_factory=self.context.provider_factory,
            prompt_codec=PromptCodec(target_language=active_config.target_language),
            settings=OrchestratorSettings(
                max_consecutive_failures=active_config.max_consecutive_failures,
                throttle_backoff_seconds=active_config.throttle_backoff_seconds,
                max_passes=active_config.max_passes,
            ),
            usage=self.context.usage,
            logger=active_logger,
            sleeper=sleeper,
        )
        self.service = TextArrayTranslator(self.orchestrator, logger=active_logger)

    def build_request(
        self,
        texts: Sequence[str],
        runtime: TranslationRuntimeConfig,
        *,
        prompt_preset_name: str | None = None,
        source_path: Path | None = None,
    ) -> TranslationRequest:
        """Build a request from resolved runtime settings.

        Raises:
            PresetNotFoundError: If `prompt_preset_name` does not exist.
        """

        prompt_content = None
        if prompt_preset_name is not None:
            preset = self.context.prompt_presets.get_by_name(prompt_preset_name)
            if preset is None:
                raise PresetNotFoundError(f"Prompt preset `{prompt_preset_name}` does not exist.")
            prompt_content = preset.prompt
        return TranslationRequest(
            source_texts=tuple(texts),
            source_language=runtime.source_language,
            max_output_token_count=runtime.max_output_tokens,
            requests_per_minute=runtime.requests_per_minute,
            api_key=runtime.api_key or "",
            prompt_preset_content=prompt_content,
            use_thinking=runtime.use_thinking,
            file_info=FileInfo.from_path(source_path) if source_path is not None else None,
        )

    async def translate(
        self,
        texts: Sequence[str],
        runtime: TranslationRuntimeConfig,
        *,
        prompt_preset_name: str | None = None,
        source_path: Path | None = None,
        progress: ProgressCallback | None = None,
    ) -> list[str]:
        """Translate a text array with chunking and return outputs in input order."""

        request = self.build_request(
            texts,
            runtime,
            prompt_preset_name=prompt_preset_name,
            source_path=source_path,
        )
        return await self.service.translate_texts(runtime.model, request, progress)

    def close(self) -> None:
        """Release database connections."""

        self.context.database.dispose()

    def __enter__(self) -> TranslationEngine:
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()
