"""Unit tests for provider family resolution and client construction."""

from __future__ import annotations

import pytest

from transbatch.config import EngineConfig
from transbatch.llm.gemini_client import GeminiModelClient
from transbatch.llm.openai_client import OpenAIChatModelClient
from transbatch.provider_factory import ProviderFactory


def test_model_identifiers_select_the_provider_family() -> None:
    """Gemini-prefixed identifiers use Gemini; everything else is OpenAI-compatible."""

    assert ProviderFactory.family_for("gemini-2.0-flash") == "gemini"
    assert ProviderFactory.family_for(" Gemini-1.5-pro ") == "gemini"
    assert ProviderFactory.family_for("gpt-4.1-mini") == "openai"
    assert ProviderFactory.family_for("llama-3-70b") == "openai"


def test_factory_builds_clients_from_engine_config() -> None:
    """Clients should inherit base URLs and sampling settings from config."""

    config = EngineConfig(
        database_path=None,
        openai_base_url="https://llm.example.test/v1",
        gemini_base_url="https://gemini.example.test/v1beta",
        temperature=0.2,
        top_p=0.8,
        http_timeout_seconds=30.0,
    )
    factory = ProviderFactory(config)

    gemini = factory.create_client("gemini-2.0-flash", "g-key", 1024)
    openai = factory.create_client("gpt-4.1-mini", "o-key", 2048)

    assert isinstance(gemini, GeminiModelClient)
    assert gemini.base_url == "https://gemini.example.test/v1beta"
    assert gemini.max_output_tokens == 1024
    assert gemini.api_key == "g-key"
    assert isinstance(openai, OpenAIChatModelClient)
    assert openai.base_url == "https://llm.example.test/v1"
    assert openai.temperature == 0.2
    assert openai.top_p == 0.8
    assert openai.timeout_seconds == 30.0


def test_registered_builders_replace_a_family() -> None:
    """A registered builder should serve its family."""

    built: list[tuple[str, str, int]] = []

    def _builder(model_id: str, api_key: str, max_output_tokens: int) -> object:
        built.append((model_id, api_key, max_output_tokens))
        return object()

    factory = ProviderFactory()
    factory.register("openai", _builder)  # type: ignore[arg-type]

    factory.create_client("local-model", "k", 10)

    assert built == [("local-model", "k", 10)]


def test_blank_model_identifier_is_rejected() -> None:
    """An empty model identifier should fail before any client is built."""

    with pytest.raises(ValueError, match="non-empty"):
        ProviderFactory().resolve("  ")
