"""CLI runtime resolution helpers.

This module isolates API-key prompting, runtime source assembly, secure
API-key persistence, and engine config loading from the command wiring layer.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path
from typing import Callable, Protocol

import typer

from .config import ConfigLoader, EngineConfig, RuntimeConfigSources, TranslationRuntimeConfig
from .credentials import create_credential_store
from .errors import PipelineStageError
from .parsing import normalize_optional_string


class CredentialStoreProtocol(Protocol):
    """Protocol for secure credential store operations used by CLI runtime resolution."""

    def get_api_key(self) -> str | None:
        """Return currently stored API key(s), if available."""

    def set_api_key(self, api_key: str) -> None:
        """Persist API key value in secure storage."""


def _set_runtime_cli_value(
    runtime_cli_values: dict[str, str],
    key: str,
    value: object,
) -> None:
    """Set a normalized runtime CLI value when user input is present."""

    if isinstance(value, bool):
        runtime_cli_values[key] = "true" if value else "false"
        return
    normalized = normalize_optional_string(None if value is None else str(value))
    if normalized is not None:
        runtime_cli_values[key] = normalized


def resolve_runtime_sources(
    model: str | None,
    source_language: str | None,
    requests_per_minute: int | None,
    max_output_tokens: int | None,
    use_thinking: bool | None,
    api_key: str | None,
    prompt_api_key: bool,
    store_api_key: bool,
    credential_store_factory: Callable[[], CredentialStoreProtocol] = create_credential_store,
) -> tuple[dict[str, str], dict[str, str]]:
    """Resolve CLI and secure runtime source mappings for one translate run."""

    runtime_cli_values: dict[str, str] = {}
    _set_runtime_cli_value(runtime_cli_values, "model", model)
    _set_runtime_cli_value(runtime_cli_values, "source_language", source_language)
    _set_runtime_cli_value(runtime_cli_values, "requests_per_minute", requests_per_minute)
    _set_runtime_cli_value(runtime_cli_values, "max_output_tokens", max_output_tokens)
    _set_runtime_cli_value(runtime_cli_values, "use_thinking", use_thinking)
    _set_runtime_cli_value(runtime_cli_values, "api_key", api_key)

    api_key_entered_in_run = "api_key" in runtime_cli_values
    if prompt_api_key and "api_key" not in runtime_cli_values:
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                "API key(s), space-separated (hidden; leave blank to skip)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is not None:
            runtime_cli_values["api_key"] = prompted_api_key
            api_key_entered_in_run = True

    credential_store = credential_store_factory()
    runtime_secure_values: dict[str, str] = {}
    stored_api_key = credential_store.get_api_key()
    if stored_api_key is not None:
        runtime_secure_values["api_key"] = stored_api_key

    if api_key_entered_in_run and store_api_key:
        try:
            credential_store.set_api_key(runtime_cli_values["api_key"])
            typer.echo("Stored API key in secure credential storage.", err=True)
        except Exception as exc:
            raise PipelineStageError(
                stage="credentials",
                detail=f"Failed to store API key securely: {exc}",
                hint=(
                    "Install and configure a keyring backend, or rerun with "
                    "`--no-store-api-key` for one-off usage."
                ),
            ) from exc

    return runtime_cli_values, runtime_secure_values


def load_engine_config(config_path: Path | None, database: Path | None) -> EngineConfig:
    """Load engine config from YAML or the environment, mapping failures to stage errors."""

    try:
        if config_path is not None:
            config = ConfigLoader.from_yaml(config_path)
        else:
            config = ConfigLoader.from_env()
    except FileNotFoundError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Invalid configuration: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc

    if database is not None:
        config = replace(config, database_path=database)
    return config


def resolve_runtime_config(
    config: EngineConfig,
    runtime_cli_values: dict[str, str],
    runtime_secure_values: dict[str, str],
) -> TranslationRuntimeConfig:
    """Resolve per-run settings with CLI > secure > env > config precedence."""

    try:
        return config.resolved_runtime(
            RuntimeConfigSources(
                cli=runtime_cli_values,
                secure=runtime_secure_values,
                env=os.environ,
            )
        )
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=str(exc),
            hint="Set valid model/rate/token values via CLI, environment, or config file.",
        ) from exc
