"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
usage summaries, cached translation rows, history entries, and presets.
"""

from __future__ import annotations

from typing import Mapping, NoReturn, Sequence

import typer

from .errors import PipelineStageError
from .models.datatypes import (
    ExamplePreset,
    PromptPreset,
    TranslationHistoryEntry,
    TranslationPage,
)

_PREVIEW_CHARS = 60


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, PipelineStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def _preview(text: str) -> str:
    """Collapse whitespace and cap a text for single-line display."""

    compact = " ".join(text.split())
    if len(compact) <= _PREVIEW_CHARS:
        return compact
    return f"{compact[: _PREVIEW_CHARS - 1]}..."


def echo_usage_summary(summary: Mapping[str, float], err: bool = False) -> None:
    """Print model-call, cache, and token counters."""

    typer.echo(
        f"Model calls: {int(summary['model_calls'])} (failed: {int(summary['failed_calls'])})",
        err=err,
    )
    typer.echo(
        f"Cache hits: {int(summary['cache_hits'])} / misses: {int(summary['cache_misses'])} "
        f"(hit rate {summary['cache_hit_rate']:.2%})",
        err=err,
    )
    typer.echo(
        f"Tokens: prompt={int(summary['prompt_tokens'])} output={int(summary['output_tokens'])}",
        err=err,
    )


def echo_translation_page(page: TranslationPage) -> None:
    """Print one page of cached translations."""

    typer.echo(
        f"Page {page.page}/{max(page.total_pages, 1)} ({page.total} cached translations)"
    )
    for record in page.items:
        status = "ok" if record.success else "failed"
        typer.echo(
            f"{record.id}. [{status}] {_preview(record.source)} => {_preview(record.target)} "
            f"(model={record.model}, last={record.last_accessed_at:%Y/%m/%d %H:%M:%S})"
        )


def echo_history(entries: Sequence[TranslationHistoryEntry]) -> None:
    """Print history rows, newest first."""

    if not entries:
        typer.echo("No history found.")
        return
    for entry in entries:
        status = "ok" if entry.success else "failed"
        typer.echo(
            f"{entry.created_at:%Y/%m/%d %H:%M:%S} [{status}] {_preview(entry.target)} "
            f"(model={entry.model})"
        )


def echo_example_presets(presets: Sequence[ExamplePreset], current_name: str | None) -> None:
    """Print example presets, marking the active one."""

    if not presets:
        typer.echo("No example presets stored.")
        return
    for preset in presets:
        marker = "*" if preset.name == current_name else " "
        description = f" - {preset.description}" if preset.description else ""
        typer.echo(f"{marker} {preset.id}. {preset.name}{description}")


def echo_example_preset(preset: ExamplePreset) -> None:
    """Print every example pair of one preset."""

    typer.echo(f"Preset: {preset.name}")
    if preset.description:
        typer.echo(f"Description: {preset.description}")
    for language, pair in preset.examples.items():
        typer.echo(f"[{language}] {len(pair.source_lines)} example line(s)")
        for source, result in zip(pair.source_lines, pair.result_lines):
            typer.echo(f"  {_preview(source)} => {_preview(result)}")


def echo_prompt_presets(presets: Sequence[PromptPreset]) -> None:
    """Print prompt preset ids and names."""

    for preset in presets:
        typer.echo(f"{preset.id}. {preset.name}")
