"""Configuration model and loaders for transbatch.

Responsibilities:
- Define engine configuration as a typed dataclass.
- Provide deterministic precedence resolution for per-run model settings.
- Provide loader entry points for file- and environment-based configuration.

Key types:
- `EngineConfig`: normalized engine settings for a session.
- `TranslationRuntimeConfig`: resolved model/key/budget values for one run.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `EngineConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping

from .llm.gemini_client import DEFAULT_GEMINI_BASE_URL
from .llm.openai_client import DEFAULT_OPENAI_BASE_URL
from .llm.prompts import DEFAULT_TARGET_LANGUAGE
from .llm.rate_limiter import DEFAULT_REQUESTS_PER_MINUTE
from .parsing import (
    normalize_optional_string,
    parse_permissive_boolean,
    parse_positive_int,
    parse_required_boolean,
)


_DEFAULT_MODEL = "gemini-2.0-flash"
_DEFAULT_SOURCE_LANGUAGE = "English"
_DEFAULT_MAX_OUTPUT_TOKENS = 8192
_DEFAULT_DATABASE_PATH = Path.home() / ".transbatch" / "transbatch.sqlite3"


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        secure: Values loaded from secure local credential storage.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TranslationRuntimeConfig:
    """Resolved per-run model settings.

    Attributes:
        model: Model identifier used for requests and rate limiting.
        source_language: Language name substituted into prompts.
        requests_per_minute: Rate limit applied on first use of the model.
        max_output_tokens: Output-token ceiling per request.
        use_thinking: Whether requests run in extended-reasoning mode.
        api_key: Space-separated API keys (never persisted or logged).
    """

    model: str
    source_language: str
    requests_per_minute: int
    max_output_tokens: int
    use_thinking: bool = False
    api_key: str | None = None


@dataclass(slots=True)
class EngineConfig:
    """Engine configuration for one session.

    Attributes:
        database_path: SQLite file holding translations and presets; `None` keeps it in memory.
        target_language: Language every text is translated into.
        source_language: Default source language name.
        model: Default model identifier.
        max_output_tokens: Default output-token ceiling per request.
        requests_per_minute: Optional per-run rate limit; the default applies when unset.
        default_requests_per_minute: Rate limit for models configured without one.
        use_thinking: Default extended-reasoning mode.
        api_key: Optional API key(s) from config files.
        memory_cache_max_items: Memory cache capacity.
        memory_cache_ttl_seconds: Memory cache entry lifetime.
        example_max_chars: Rolling example buffer budget in source characters.
        max_consecutive_failures: Failed requests in a row that abort a run.
        throttle_backoff_seconds: Sleep after a rate-limit or quota rejection.
        max_passes: Optional bound on batching passes per run; unbounded when unset.
        openai_base_url: OpenAI-compatible API root.
        gemini_base_url: Gemini API root.
        http_timeout_seconds: Timeout per provider HTTP request.
        temperature: Sampling temperature.
        top_p: Nucleus sampling mass.
        runtime_sources: Optional runtime source overrides injected by CLI.
    """

    database_path: Path | None = _DEFAULT_DATABASE_PATH
    target_language: str = DEFAULT_TARGET_LANGUAGE
    source_language: str = _DEFAULT_SOURCE_LANGUAGE
    model: str = _DEFAULT_MODEL
    max_output_tokens: int = _DEFAULT_MAX_OUTPUT_TOKENS
    requests_per_minute: int | None = None
    default_requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE
    use_thinking: bool = False
    api_key: str | None = None
    memory_cache_max_items: int = 1000
    memory_cache_ttl_seconds: float = 24 * 60 * 60.0
    example_max_chars: int = 300
    max_consecutive_failures: int = 3
    throttle_backoff_seconds: float = 10.0
    max_passes: int | None = None
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    gemini_base_url: str = DEFAULT_GEMINI_BASE_URL
    http_timeout_seconds: float = 120.0
    temperature: float = 0.5
    top_p: float = 0.95
    runtime_sources: RuntimeConfigSources = field(default_factory=RuntimeConfigSources)

    def validate(self) -> None:
        """Validate configuration values before building an engine."""

        self._require_non_empty(self.target_language, "target_language")
        self._require_non_empty(self.source_language, "source_language")
        self._require_non_empty(self.model, "model")
        for field_name in (
            "max_output_tokens",
            "default_requests_per_minute",
            "memory_cache_max_items",
            "example_max_chars",
            "max_consecutive_failures",
        ):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"`{field_name}` must be a positive integer.")
        for field_name in ("requests_per_minute", "max_passes"):
            value = getattr(self, field_name)
            if value is not None and (isinstance(value, bool) or value <= 0):
                raise ValueError(f"`{field_name}` must be a positive integer when set.")
        if self.memory_cache_ttl_seconds <= 0:
            raise ValueError("`memory_cache_ttl_seconds` must be positive.")
        if self.throttle_backoff_seconds < 0:
            raise ValueError("`throttle_backoff_seconds` must not be negative.")
        if self.http_timeout_seconds <= 0:
            raise ValueError("`http_timeout_seconds` must be positive.")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError("`temperature` must be between 0 and 2.")
        if not 0.0 < self.top_p <= 1.0:
            raise ValueError("`top_p` must be greater than 0 and at most 1.")

    def resolved_runtime(
        self, sources: RuntimeConfigSources | None = None
    ) -> TranslationRuntimeConfig:
        """Resolve per-run settings with deterministic source precedence.

        Precedence for each key is:
        `cli` > `secure` > `env` > config field default.
        """

        resolved_sources = sources if sources is not None else self.runtime_sources

        model = self._resolve_runtime_value("model", "TRANSBATCH_MODEL", self.model, resolved_sources)
        source_language = self._resolve_runtime_value(
            "source_language",
            "TRANSBATCH_SOURCE_LANGUAGE",
            self.source_language,
            resolved_sources,
        )
        requests_per_minute = parse_positive_int(
            self._resolve_runtime_value(
                "requests_per_minute",
                "TRANSBATCH_REQUESTS_PER_MINUTE",
                str(self.requests_per_minute or self.default_requests_per_minute),
                resolved_sources,
            ),
            "requests_per_minute",
        )
        max_output_tokens = parse_positive_int(
            self._resolve_runtime_value(
                "max_output_tokens",
                "TRANSBATCH_MAX_OUTPUT_TOKENS",
                str(self.max_output_tokens),
                resolved_sources,
            ),
            "max_output_tokens",
        )
        thinking_value = self._resolve_runtime_value(
            "use_thinking",
            "TRANSBATCH_USE_THINKING",
            "true" if self.use_thinking else "false",
            resolved_sources,
        )
        use_thinking = parse_required_boolean(thinking_value, "use_thinking")
        api_key = self._resolve_optional_runtime_value(
            "api_key", "TRANSBATCH_API_KEY", self.api_key, resolved_sources
        )

        return TranslationRuntimeConfig(
            model=model,
            source_language=source_language,
            requests_per_minute=requests_per_minute,
            max_output_tokens=max_output_tokens,
            use_thinking=use_thinking,
            api_key=api_key,
        )

    def _resolve_runtime_value(
        self,
        key: str,
        env_key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str:
        """Resolve a required runtime value from sources in precedence order."""

        resolved = self._resolve_optional_runtime_value(key, env_key, default_value, sources)
        if resolved is None:
            raise ValueError(
                f"`{key}` could not be resolved from CLI, secure storage, env, or defaults."
            )
        return resolved

    @staticmethod
    def _resolve_optional_runtime_value(
        key: str,
        env_key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str | None:
        """Resolve an optional runtime value from sources in precedence order."""

        for mapping, lookup_key in (
            (sources.cli, key),
            (sources.secure, key),
            (sources.env, env_key),
        ):
            if lookup_key in mapping:
                value = normalize_optional_string(mapping.get(lookup_key))
                if value is not None:
                    return value
        return normalize_optional_string(default_value)

    @staticmethod
    def _require_non_empty(value: str, field_name: str) -> None:
        """Validate that string fields are not empty."""

        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"`{field_name}` must be a non-empty string.")


class ConfigLoader:
    """Factory methods for creating `EngineConfig` from external sources."""

    _INT_KEYS = frozenset(
        {
            "max_output_tokens",
            "requests_per_minute",
            "default_requests_per_minute",
            "memory_cache_max_items",
            "example_max_chars",
            "max_consecutive_failures",
            "max_passes",
        }
    )
    _FLOAT_KEYS = frozenset(
        {
            "memory_cache_ttl_seconds",
            "throttle_backoff_seconds",
            "http_timeout_seconds",
            "temperature",
            "top_p",
        }
    )
    _STRING_KEYS = frozenset(
        {
            "target_language",
            "source_language",
            "model",
            "api_key",
            "openai_base_url",
            "gemini_base_url",
        }
    )
    _BOOLEAN_KEYS = frozenset({"use_thinking"})
    _SUPPORTED_YAML_KEYS = (
        frozenset({"database_path"}) | _INT_KEYS | _FLOAT_KEYS | _STRING_KEYS | _BOOLEAN_KEYS
    )

    @staticmethod
    def from_yaml(path: Path) -> EngineConfig:
        """Create a validated config from a YAML file."""

        payload = ConfigLoader._parse_yaml_payload(path.read_text(encoding="utf-8"), path)
        return ConfigLoader._build_config_from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> EngineConfig:
        """Create a validated config from `TRANSBATCH_*` environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        payload: dict[str, Any] = {}
        for key in ConfigLoader._SUPPORTED_YAML_KEYS:
            value = normalize_optional_string(env_map.get(f"TRANSBATCH_{key.upper()}"))
            if value is not None:
                payload[key] = value
        runtime_env = {
            key: value
            for key, value in env_map.items()
            if key.startswith("TRANSBATCH_") and normalize_optional_string(value) is not None
        }
        config = ConfigLoader._build_config_from_mapping(payload, source_label="Environment")
        config.runtime_sources = RuntimeConfigSources(env=runtime_env)
        return config

    @staticmethod
    def _parse_yaml_payload(raw_text: str, path: Path) -> Mapping[str, Any]:
        """Parse YAML text and enforce a mapping root payload."""

        import yaml

        try:
            payload = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ValueError(f"YAML config `{path}` is not valid YAML: {exc}") from exc
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")
        return payload

    @staticmethod
    def _build_config_from_mapping(
        payload: Mapping[str, Any], source_label: str
    ) -> EngineConfig:
        """Build a validated config from a normalized mapping payload."""

        unknown = sorted(set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            key_list = ", ".join(str(key) for key in unknown)
            raise ValueError(f"{source_label} includes unsupported key(s): {key_list}.")

        values: dict[str, Any] = {}
        for key, raw_value in payload.items():
            if key == "database_path":
                values[key] = ConfigLoader._database_path(raw_value)
            elif key in ConfigLoader._INT_KEYS:
                values[key] = ConfigLoader._positive_int(raw_value, key, source_label)
            elif key in ConfigLoader._FLOAT_KEYS:
                values[key] = ConfigLoader._float(raw_value, key, source_label)
            elif key in ConfigLoader._BOOLEAN_KEYS:
                parsed = parse_permissive_boolean(raw_value)
                if parsed is None:
                    raise ValueError(
                        f"{source_label} field `{key}` must be a boolean value "
                        "(`true`/`false`, `1`/`0`, `yes`/`no`)."
                    )
                values[key] = parsed
            else:
                normalized = normalize_optional_string(raw_value)
                if normalized is not None:
                    values[key] = normalized

        config = EngineConfig(**values)
        config.validate()
        return config

    @staticmethod
    def _database_path(raw_value: Any) -> Path | None:
        """Map `:memory:` or blank to an in-memory database, otherwise a path."""

        normalized = normalize_optional_string(raw_value)
        if normalized is None or normalized == ":memory:":
            return None
        return Path(normalized).expanduser()

    @staticmethod
    def _positive_int(raw_value: Any, key: str, source_label: str) -> int:
        """Read and validate a positive integer field."""

        try:
            return parse_positive_int(raw_value, key)
        except ValueError as exc:
            raise ValueError(f"{source_label} field `{key}` must be a positive integer.") from exc

    @staticmethod
    def _float(raw_value: Any, key: str, source_label: str) -> float:
        """Read a numeric field."""

        if isinstance(raw_value, bool):
            raise ValueError(f"{source_label} field `{key}` must be a number.")
        try:
            return float(raw_value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{source_label} field `{key}` must be a number.") from exc
