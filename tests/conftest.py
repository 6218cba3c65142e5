"""Shared pytest fixtures for the full transbatch test suite."""

from __future__ import annotations

from typing import Callable, Iterator

import pytest

from tests.fakes import FakeProvider, RecordingSleeper
from transbatch.cache.manager import TranslationCache
from transbatch.cache.memory import MemoryTranslationCache
from transbatch.fewshot.store import ExampleStore
from transbatch.llm.rate_limiter import RateLimiterRegistry
from transbatch.models.datatypes import TranslationRequest
from transbatch.pipeline.orchestrator import OrchestratorSettings, TranslationOrchestrator
from transbatch.storage.database import Database
from transbatch.storage.presets import ExamplePresetRepository
from transbatch.storage.translations import SqliteTranslationStore


@pytest.fixture
def database() -> Iterator[Database]:
    """Provide a fresh in-memory database with the schema created."""

    db = Database.from_path(None)
    yield db
    db.dispose()


@pytest.fixture
def translation_store(database: Database) -> SqliteTranslationStore:
    """Provide a durable translation store bound to the in-memory database."""

    return SqliteTranslationStore(database)


@pytest.fixture
def translation_cache(translation_store: SqliteTranslationStore) -> TranslationCache:
    """Provide a two-tier cache over the in-memory store."""

    return TranslationCache(translation_store, MemoryTranslationCache())


@pytest.fixture
def example_store(database: Database) -> ExampleStore:
    """Provide an example store with no presets loaded."""

    store = ExampleStore(ExamplePresetRepository(database))
    store.initialize()
    return store


@pytest.fixture
def sleeper() -> RecordingSleeper:
    """Provide an async sleeper that records delays without waiting."""

    return RecordingSleeper()


@pytest.fixture
def make_orchestrator(
    translation_cache: TranslationCache,
    example_store: ExampleStore,
    sleeper: RecordingSleeper,
) -> Callable[..., TranslationOrchestrator]:
    """Build orchestrators wired to in-memory state and a scripted provider."""

    def _build(
        provider: FakeProvider,
        settings: OrchestratorSettings | None = None,
    ) -> TranslationOrchestrator:
        return TranslationOrchestrator(
            cache=translation_cache,
            example_store=example_store,
            rate_limiters=RateLimiterRegistry(clock=lambda: 0.0, sleeper=sleeper),
            provider_factory=provider,  # type: ignore[arg-type]
            settings=settings,
            sleeper=sleeper,
        )

    return _build


@pytest.fixture
def make_request() -> Callable[..., TranslationRequest]:
    """Build translation requests with test-friendly defaults."""

    def _build(texts: list[str], **overrides: object) -> TranslationRequest:
        values: dict[str, object] = {
            "source_texts": tuple(texts),
            "source_language": "English",
            "max_output_token_count": 8192,
            "requests_per_minute": 1000,
            "api_key": "key-a",
        }
        values.update(overrides)
        return TranslationRequest(**values)  # type: ignore[arg-type]

    return _build
