"""Command-line interface for transbatch.

Responsibilities:
- Expose user-facing commands for translation runs and cache management.
- Manage example presets, prompt presets, and stored credentials.
- Convert CLI arguments into `EngineConfig` and runtime settings.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any

import typer

from .cli_rendering import (
    echo_example_preset,
    echo_example_presets,
    echo_history,
    echo_prompt_presets,
    echo_translation_page,
    echo_usage_summary,
    exit_with_command_error,
)
from .cli_runtime import load_engine_config, resolve_runtime_config, resolve_runtime_sources
from .credentials import create_credential_store
from .engine import TranslationEngine
from .errors import PipelineStageError
from .models.datatypes import ExamplePair, TranslationExport, TranslationSearch
from .parsing import normalize_optional_string
from .provider_factory import ProviderFactory
from .telemetry.logger import configure_logging

app = typer.Typer(
    name="transbatch",
    no_args_is_help=True,
    help="Batch translation of short texts through rate-limited LLMs.",
)
cache_app = typer.Typer(no_args_is_help=True, help="Inspect and edit cached translations.")
presets_app = typer.Typer(no_args_is_help=True, help="Manage few-shot example presets.")
prompts_app = typer.Typer(no_args_is_help=True, help="Manage prompt template presets.")
app.add_typer(cache_app, name="cache")
app.add_typer(presets_app, name="presets")
app.add_typer(prompts_app, name="prompts")

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to YAML config file with engine defaults."),
]
DatabaseOption = Annotated[
    Path | None,
    typer.Option("--database", help="SQLite database path (overrides config)."),
]


class TranslateProgressIndicator:
    """Render one progress line per reconciled batch."""

    def __init__(self, command_name: str, total: int) -> None:
        self._command_name = command_name
        self._total = total
        self._updates = 0

    def on_progress(self, snapshot: list[str]) -> None:
        """Print a progress line for an intermediate output snapshot."""

        self._updates += 1
        typer.echo(
            f"[progress] command={self._command_name} update={self._updates} "
            f"chunk_texts={len(snapshot)} total_texts={self._total}",
            err=True,
        )


@app.callback()
def main_callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Emit debug-level engine events.")
    ] = False,
) -> None:
    """Configure engine logging for every command."""

    configure_logging(level="DEBUG" if verbose else "WARNING")


def _open_engine(config_file: Path | None, database: Path | None) -> TranslationEngine:
    """Build an engine from config sources."""

    config = load_engine_config(config_file, database)
    try:
        return TranslationEngine(config, provider_factory=ProviderFactory(config))
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=str(exc),
            hint="Fix config values and rerun.",
        ) from exc


def _read_input_texts(input_path: Path, input_format: str) -> tuple[list[str], str]:
    """Read source texts as JSON string array or one text per line."""

    try:
        raw_text = input_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PipelineStageError(
            stage="input",
            detail=f"Cannot read input file `{input_path}`: {exc}",
            hint="Pass an existing UTF-8 text or JSON file.",
        ) from exc

    resolved_format = input_format
    if resolved_format == "auto":
        is_json = input_path.suffix.lower() == ".json" or raw_text.lstrip().startswith("[")
        resolved_format = "json" if is_json else "lines"

    if resolved_format == "lines":
        return raw_text.splitlines(), "lines"
    if resolved_format != "json":
        raise PipelineStageError(
            stage="input",
            detail=f"Unsupported input format `{input_format}`.",
            hint="Use `auto`, `lines`, or `json`.",
        )

    try:
        payload = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise PipelineStageError(
            stage="input",
            detail=f"Input file `{input_path}` is not valid JSON: {exc}",
            hint="Provide a JSON array of strings.",
        ) from exc
    if not isinstance(payload, list) or not all(isinstance(item, str) for item in payload):
        raise PipelineStageError(
            stage="input",
            detail="JSON input must be an array of strings.",
            hint="Provide a JSON array of strings.",
        )
    return payload, "json"


def _render_output(translations: list[str], output_format: str) -> str:
    """Serialize translations in the same format as the input."""

    if output_format == "json":
        return json.dumps(translations, ensure_ascii=False, indent=2) + "\n"
    return "".join(f"{line}\n" for line in translations)


def _search_filter(
    search_type: str,
    search_value: str | None,
    start_date: str | None,
    end_date: str | None,
) -> TranslationSearch:
    """Build a search filter from CLI options."""

    if search_type not in {"source", "target", "file_name", "file_path", "date"}:
        raise PipelineStageError(
            stage="cache",
            detail=f"Unsupported search type `{search_type}`.",
            hint="Use one of: source, target, file_name, file_path, date.",
        )
    return TranslationSearch(
        search_type=search_type,  # type: ignore[arg-type]
        search_value=search_value or "",
        start_date=normalize_optional_string(start_date),
        end_date=normalize_optional_string(end_date),
    )


SearchTypeOption = Annotated[
    str,
    typer.Option("--search-type", help="source, target, file_name, file_path, or date."),
]
SearchValueOption = Annotated[
    str | None, typer.Option("--search-value", help="Prefix matched against the column.")
]
StartDateOption = Annotated[
    str | None, typer.Option("--start-date", help="Inclusive YYYY/MM/DD lower bound.")
]
EndDateOption = Annotated[
    str | None, typer.Option("--end-date", help="Inclusive YYYY/MM/DD upper bound.")
]


@app.command("translate")
def translate_command(
    input_path: Annotated[
        Path,
        typer.Argument(help="Text file (one text per line) or JSON array of strings."),
    ],
    out: Annotated[
        Path | None,
        typer.Option("--out", help="Output file; translations go to stdout when omitted."),
    ] = None,
    input_format: Annotated[
        str,
        typer.Option("--format", help="Input format: `auto`, `lines`, or `json`."),
    ] = "auto",
    config_file: ConfigOption = None,
    database: DatabaseOption = None,
    model: Annotated[str | None, typer.Option("--model", help="Model id override.")] = None,
    source_language: Annotated[
        str | None,
        typer.Option("--source-language", help="Source language name, e.g. `Japanese`."),
    ] = None,
    requests_per_minute: Annotated[
        int | None,
        typer.Option("--rpm", help="Requests per minute for the model bucket."),
    ] = None,
    max_output_tokens: Annotated[
        int | None,
        typer.Option("--max-output-tokens", help="Output-token ceiling per request."),
    ] = None,
    use_thinking: Annotated[
        bool | None,
        typer.Option("--thinking/--no-thinking", help="Run requests in extended-reasoning mode."),
    ] = None,
    prompt_preset: Annotated[
        str | None,
        typer.Option("--prompt-preset", help="Name of a stored prompt template to use."),
    ] = None,
    example_preset: Annotated[
        str | None,
        typer.Option("--example-preset", help="Name of a stored example preset to activate."),
    ] = None,
    api_key: Annotated[
        str | None,
        typer.Option(
            "--api-key",
            help=(
                "Space-separated API key(s) used round-robin. Prefer `--prompt-api-key` "
                "to avoid shell history."
            ),
        ),
    ] = None,
    prompt_api_key: Annotated[
        bool,
        typer.Option("--prompt-api-key", help="Prompt for API key(s) with hidden input."),
    ] = False,
    store_api_key: Annotated[
        bool,
        typer.Option(
            "--store-api-key/--no-store-api-key",
            help="Persist CLI-entered API key(s) to secure credential storage.",
        ),
    ] = False,
) -> None:
    """Translate a text array and print a usage summary."""

    try:
        texts, resolved_format = _read_input_texts(input_path, input_format)
        runtime_cli_values, runtime_secure_values = resolve_runtime_sources(
            model=model,
            source_language=source_language,
            requests_per_minute=requests_per_minute,
            max_output_tokens=max_output_tokens,
            use_thinking=use_thinking,
            api_key=api_key,
            prompt_api_key=prompt_api_key,
            store_api_key=store_api_key,
            credential_store_factory=create_credential_store,
        )
        engine = _open_engine(config_file, database)
        with engine:
            runtime = resolve_runtime_config(
                engine.context.config, runtime_cli_values, runtime_secure_values
            )
            if example_preset is not None:
                engine.context.example_store.load_preset(example_preset)
            progress = TranslateProgressIndicator("translate", total=len(texts))
            translations = asyncio.run(
                engine.translate(
                    texts,
                    runtime,
                    prompt_preset_name=prompt_preset,
                    source_path=input_path.resolve(),
                    progress=progress.on_progress,
                )
            )
            summary = engine.context.usage.summary()
    except Exception as exc:
        exit_with_command_error("translate", exc)

    rendered = _render_output(translations, resolved_format)
    if out is None:
        typer.echo(rendered, nl=False)
    else:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(rendered, encoding="utf-8")
        typer.echo(f"Translations written: {out}", err=True)
    typer.echo(f"Model: {runtime.model}", err=True)
    typer.echo(f"Texts: {len(texts)}", err=True)
    echo_usage_summary(summary, err=True)


@cache_app.command("list")
def cache_list_command(
    page: Annotated[int, typer.Option("--page", min=1, help="1-based page number.")] = 1,
    per_page: Annotated[int, typer.Option("--per-page", min=1, help="Rows per page.")] = 20,
    search_type: SearchTypeOption = "source",
    search_value: SearchValueOption = None,
    start_date: StartDateOption = None,
    end_date: EndDateOption = None,
    config_file: ConfigOption = None,
    database: DatabaseOption = None,
) -> None:
    """List cached translations, most recently written first."""

    try:
        search = _search_filter(search_type, search_value, start_date, end_date)
        with _open_engine(config_file, database) as engine:
            result = asyncio.run(
                engine.context.cache.search(page=page, per_page=per_page, search=search)
            )
    except Exception as exc:
        exit_with_command_error("cache list", exc)

    echo_translation_page(result)


@cache_app.command("history")
def cache_history_command(
    translation_id: Annotated[int, typer.Argument(help="Cached translation id.")],
    config_file: ConfigOption = None,
    database: DatabaseOption = None,
) -> None:
    """Show the write history of one cached translation."""

    try:
        with _open_engine(config_file, database) as engine:
            entries = asyncio.run(engine.context.cache.history_for_translation(translation_id))
    except Exception as exc:
        exit_with_command_error("cache history", exc)

    echo_history(entries)


@cache_app.command("update")
def cache_update_command(
    translation_id: Annotated[int, typer.Argument(help="Cached translation id.")],
    target: Annotated[str, typer.Argument(help="Replacement translation text.")],
    config_file: ConfigOption = None,
    database: DatabaseOption = None,
) -> None:
    """Overwrite one cached translation."""

    try:
        with _open_engine(config_file, database) as engine:
            record = asyncio.run(engine.context.cache.update_translation(translation_id, target))
        if record is None:
            raise PipelineStageError(
                stage="cache",
                detail=f"Cached translation id {translation_id} does not exist.",
                hint="Use `transbatch cache list` to find ids.",
            )
    except Exception as exc:
        exit_with_command_error("cache update", exc)

    typer.echo(f"Updated translation {record.id}.")


@cache_app.command("delete")
def cache_delete_command(
    translation_ids: Annotated[
        list[int] | None, typer.Argument(help="Cached translation ids to delete.")
    ] = None,
    matching: Annotated[
        bool,
        typer.Option("--matching", help="Delete every record matching the search options."),
    ] = False,
    search_type: SearchTypeOption = "source",
    search_value: SearchValueOption = None,
    start_date: StartDateOption = None,
    end_date: EndDateOption = None,
    config_file: ConfigOption = None,
    database: DatabaseOption = None,
) -> None:
    """Delete cached translations by id or by search filter."""

    try:
        if matching == bool(translation_ids):
            raise PipelineStageError(
                stage="cache",
                detail="Pass translation ids or `--matching`, not both or neither.",
                hint="Run one delete mode per command invocation.",
            )
        with _open_engine(config_file, database) as engine:
            if matching:
                search = _search_filter(search_type, search_value, start_date, end_date)
                removed = asyncio.run(engine.context.cache.delete_matching(search))
            else:
                removed = asyncio.run(
                    engine.context.cache.delete_translations(translation_ids or [])
                )
    except Exception as exc:
        exit_with_command_error("cache delete", exc)

    typer.echo(f"Deleted {removed} cached translation(s).")


@cache_app.command("clear")
def cache_clear_command(
    yes: Annotated[bool, typer.Option("--yes", help="Skip the confirmation prompt.")] = False,
    config_file: ConfigOption = None,
    database: DatabaseOption = None,
) -> None:
    """Remove every cached translation and its history."""

    if not yes:
        typer.confirm("Delete every cached translation?", abort=True)
    try:
        with _open_engine(config_file, database) as engine:
            removed = asyncio.run(engine.context.cache.clear())
    except Exception as exc:
        exit_with_command_error("cache clear", exc)

    typer.echo(f"Cleared {removed} cached translation(s).")


@cache_app.command("export")
def cache_export_command(
    out: Annotated[Path, typer.Argument(help="Destination JSON file.")],
    search_type: SearchTypeOption = "source",
    search_value: SearchValueOption = None,
    start_date: StartDateOption = None,
    end_date: EndDateOption = None,
    config_file: ConfigOption = None,
    database: DatabaseOption = None,
) -> None:
    """Export cached translations as a JSON array of `{id, source, target}`."""

    try:
        search = _search_filter(search_type, search_value, start_date, end_date)
        with _open_engine(config_file, database) as engine:
            rows = asyncio.run(engine.context.cache.export_translations(search))
        payload = [{"id": row.id, "source": row.source, "target": row.target} for row in rows]
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    except Exception as exc:
        exit_with_command_error("cache export", exc)

    typer.echo(f"Exported {len(rows)} cached translation(s) to {out}.")


def _parse_import_rows(payload: Any) -> list[TranslationExport]:
    """Validate an import payload of `{id, source, target}` objects."""

    if not isinstance(payload, list):
        raise ValueError("Import file must contain a JSON array.")
    rows: list[TranslationExport] = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            raise ValueError(f"Import row {index} must be an object.")
        row_id, source, target = item.get("id"), item.get("source"), item.get("target")
        if isinstance(row_id, bool) or not isinstance(row_id, int):
            raise ValueError(f"Import row {index} needs an integer `id`.")
        if not isinstance(source, str) or not isinstance(target, str):
            raise ValueError(f"Import row {index} needs string `source` and `target`.")
        rows.append(TranslationExport(id=row_id, source=source, target=target))
    return rows


@cache_app.command("import")
def cache_import_command(
    source_file: Annotated[Path, typer.Argument(help="JSON file produced by `cache export`.")],
    config_file: ConfigOption = None,
    database: DatabaseOption = None,
) -> None:
    """Apply edited targets for rows whose id and source still match."""

    try:
        try:
            rows = _parse_import_rows(json.loads(source_file.read_text(encoding="utf-8")))
        except (OSError, ValueError) as exc:
            raise PipelineStageError(
                stage="cache",
                detail=f"Cannot import `{source_file}`: {exc}",
                hint="Provide a JSON array exported by `transbatch cache export`.",
            ) from exc
        with _open_engine(config_file, database) as engine:
            applied = asyncio.run(engine.context.cache.import_translations(rows))
    except Exception as exc:
        exit_with_command_error("cache import", exc)

    typer.echo(f"Imported {applied} of {len(rows)} row(s).")


@presets_app.command("list")
def presets_list_command(
    config_file: ConfigOption = None,
    database: DatabaseOption = None,
) -> None:
    """List example presets; `*` marks the one loaded by default."""

    try:
        with _open_engine(config_file, database) as engine:
            store = engine.context.example_store
            presets = store.list_presets()
            current = store.current_preset_name
    except Exception as exc:
        exit_with_command_error("presets list", exc)

    echo_example_presets(presets, current)


@presets_app.command("show")
def presets_show_command(
    name: Annotated[str, typer.Argument(help="Preset name.")],
    config_file: ConfigOption = None,
    database: DatabaseOption = None,
) -> None:
    """Print the example pairs of one preset."""

    try:
        with _open_engine(config_file, database) as engine:
            preset = engine.context.example_store.get_preset(name)
        if preset is None:
            raise PipelineStageError(
                stage="presets",
                detail=f"Example preset `{name}` does not exist.",
                hint="Use `transbatch presets list` to see stored presets.",
            )
    except Exception as exc:
        exit_with_command_error("presets show", exc)

    echo_example_preset(preset)


def _load_examples_file(path: Path) -> dict[str, ExamplePair]:
    """Read `{language: {sourceLines, resultLines}}` examples from JSON."""

    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Examples file must contain a JSON object keyed by language.")
    examples: dict[str, ExamplePair] = {}
    for language, value in payload.items():
        if not isinstance(value, dict):
            raise ValueError(f"Examples for `{language}` must be an object.")
        pair = ExamplePair.from_payload(value)
        if len(pair.source_lines) != len(pair.result_lines):
            raise ValueError(f"Examples for `{language}` need as many results as sources.")
        examples[str(language)] = pair
    return examples


@presets_app.command("create")
def presets_create_command(
    name: Annotated[str, typer.Argument(help="Unique preset name.")],
    description: Annotated[
        str | None, typer.Option("--description", help="Free-text description.")
    ] = None,
    examples_file: Annotated[
        Path | None,
        typer.Option(
            "--examples-file",
            help="JSON object of `{language: {sourceLines, resultLines}}`.",
        ),
    ] = None,
    config_file: ConfigOption = None,
    database: DatabaseOption = None,
) -> None:
    """Create an example preset, empty for every language unless a file is given."""

    try:
        examples = None
        if examples_file is not None:
            try:
                examples = _load_examples_file(examples_file)
            except (OSError, ValueError) as exc:
                raise PipelineStageError(
                    stage="presets",
                    detail=f"Cannot read examples file `{examples_file}`: {exc}",
                    hint="Provide a JSON object keyed by source language.",
                ) from exc
        with _open_engine(config_file, database) as engine:
            preset = engine.context.example_store.create_preset(
                name, description=description, examples=examples
            )
    except Exception as exc:
        exit_with_command_error("presets create", exc)

    typer.echo(f"Created example preset {preset.id}: {preset.name}")


@presets_app.command("delete")
def presets_delete_command(
    name: Annotated[str, typer.Argument(help="Preset name.")],
    config_file: ConfigOption = None,
    database: DatabaseOption = None,
) -> None:
    """Delete an example preset."""

    try:
        with _open_engine(config_file, database) as engine:
            store = engine.context.example_store
            preset = store.get_preset(name)
            if preset is None:
                raise PipelineStageError(
                    stage="presets",
                    detail=f"Example preset `{name}` does not exist.",
                    hint="Use `transbatch presets list` to see stored presets.",
                )
            store.delete_preset(preset.id)
    except Exception as exc:
        exit_with_command_error("presets delete", exc)

    typer.echo(f"Deleted example preset `{name}`.")


@prompts_app.command("list")
def prompts_list_command(
    config_file: ConfigOption = None,
    database: DatabaseOption = None,
) -> None:
    """List stored prompt templates."""

    try:
        with _open_engine(config_file, database) as engine:
            presets = engine.context.prompt_presets.list_presets()
    except Exception as exc:
        exit_with_command_error("prompts list", exc)

    echo_prompt_presets(presets)


@prompts_app.command("create")
def prompts_create_command(
    name: Annotated[str, typer.Argument(help="Unique prompt preset name.")],
    template_file: Annotated[Path, typer.Argument(help="Template file with role markers.")],
    config_file: ConfigOption = None,
    database: DatabaseOption = None,
) -> None:
    """Store a prompt template read from a file."""

    try:
        try:
            template = template_file.read_text(encoding="utf-8")
        except OSError as exc:
            raise PipelineStageError(
                stage="prompts",
                detail=f"Cannot read template file `{template_file}`: {exc}",
                hint="Pass an existing UTF-8 template file.",
            ) from exc
        if "{{content}}" not in template:
            raise PipelineStageError(
                stage="prompts",
                detail="Template has no `{{content}}` placeholder.",
                hint="Add `{{content}}` where the tagged batch should be inserted.",
            )
        with _open_engine(config_file, database) as engine:
            preset = engine.context.prompt_presets.create(name, template)
    except Exception as exc:
        exit_with_command_error("prompts create", exc)

    typer.echo(f"Created prompt preset {preset.id}: {preset.name}")


@prompts_app.command("delete")
def prompts_delete_command(
    name: Annotated[str, typer.Argument(help="Prompt preset name.")],
    config_file: ConfigOption = None,
    database: DatabaseOption = None,
) -> None:
    """Delete a stored prompt template."""

    try:
        with _open_engine(config_file, database) as engine:
            repository = engine.context.prompt_presets
            preset = repository.get_by_name(name)
            if preset is None:
                raise PipelineStageError(
                    stage="prompts",
                    detail=f"Prompt preset `{name}` does not exist.",
                    hint="Use `transbatch prompts list` to see stored templates.",
                )
            repository.delete(preset.id)
    except Exception as exc:
        exit_with_command_error("prompts delete", exc)

    typer.echo(f"Deleted prompt preset `{name}`.")


@app.command("credentials")
def credentials_command(
    set_api_key: Annotated[
        bool,
        typer.Option(
            "--set-api-key",
            help="Prompt for API key(s) with hidden input and store them securely.",
        ),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option(
            "--clear-api-key",
            help="Clear stored API key(s) from secure credential storage.",
        ),
    ] = False,
) -> None:
    """Manage securely stored CLI credentials."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            PipelineStageError(
                stage="credentials",
                detail="`--set-api-key` and `--clear-api-key` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store()
    if set_api_key:
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                "API key(s), space-separated (hidden input)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(prompted_api_key)
        except Exception as exc:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo("API key stored in secure credential storage.")
        return

    if clear_api_key:
        removed = credential_store.clear_api_key()
        if removed:
            typer.echo("Stored API key cleared from secure credential storage.")
        else:
            typer.echo("No stored API key found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    stored = credential_store.get_api_key()
    status = f"present ({len(stored.split())} key(s))" if stored is not None else "not set"
    typer.echo(f"Secure credential storage: {availability}")
    typer.echo(f"Stored API key: {status}")


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
