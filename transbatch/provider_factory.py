"""Provider factory helpers for model clients.

Responsibilities:
- Resolve model identifiers to a provider family.
- Build configured model clients per `(model, api key, output ceiling)`.
- Keep orchestration independent from concrete provider class construction.

Notes:
- Models whose identifier starts with `gemini` use the Gemini API; every other
  identifier is sent to an OpenAI-compatible chat completions endpoint.
"""

from __future__ import annotations

from .config import EngineConfig
from .llm.gemini_client import GeminiModelClient
from .llm.model_client import ModelClient, ModelClientBuilder
from .llm.openai_client import OpenAIChatModelClient


class ProviderFactory:
    """Factory for provider-backed model clients used by the orchestrator."""

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config if config is not None else EngineConfig(database_path=None)
        self._builders: dict[str, ModelClientBuilder] = {
            "gemini": self._create_gemini_client,
            "openai": self._create_openai_client,
        }

    @staticmethod
    def family_for(model_id: str) -> str:
        """Return the provider family serving a model identifier."""

        if model_id.strip().lower().startswith("gemini"):
            return "gemini"
        return "openai"

    def register(self, family: str, builder: ModelClientBuilder) -> None:
        """Install or replace the client builder of a provider family."""

        self._builders[family] = builder

    def resolve(self, model_id: str) -> ModelClientBuilder:
        """Return the client builder serving `model_id`."""

        if not model_id.strip():
            raise ValueError("Model identifier must be non-empty.")
        family = self.family_for(model_id)
        builder = self._builders.get(family)
        if builder is None:
            raise ValueError(f"Unsupported provider family `{family}` for model `{model_id}`.")
        return builder

    def create_client(self, model_id: str, api_key: str, max_output_tokens: int) -> ModelClient:
        """Build one client for a model identifier."""

        return self.resolve(model_id)(model_id, api_key, max_output_tokens)

    def _create_gemini_client(
        self, model_id: str, api_key: str, max_output_tokens: int
    ) -> ModelClient:
        return GeminiModelClient(
            model=model_id,
            api_key=api_key,
            base_url=self._config.gemini_base_url,
            max_output_tokens=max_output_tokens,
            temperature=self._config.temperature,
            top_p=self._config.top_p,
            timeout_seconds=self._config.http_timeout_seconds,
        )

    def _create_openai_client(
        self, model_id: str, api_key: str, max_output_tokens: int
    ) -> ModelClient:
        return OpenAIChatModelClient(
            model=model_id,
            api_key=api_key,
            base_url=self._config.openai_base_url,
            max_output_tokens=max_output_tokens,
            temperature=self._config.temperature,
            top_p=self._config.top_p,
            timeout_seconds=self._config.http_timeout_seconds,
        )
