"""Integration tests for the `translate` CLI command."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from tests.fakes import FakeProvider
from transbatch.cli import app


def test_translate_lines_file_writes_output_and_summary(
    tmp_path: Path, database_path: Path, fake_provider: FakeProvider
) -> None:
    """Line input should produce line output with blanks preserved and duplicates deduped."""

    input_path = tmp_path / "strings.txt"
    input_path.write_text("Hello\n\nWorld\nHello\n", encoding="utf-8")
    out_path = tmp_path / "out" / "strings.ko.txt"

    result = CliRunner().invoke(
        app,
        [
            "translate",
            str(input_path),
            "--out",
            str(out_path),
            "--database",
            str(database_path),
            "--api-key",
            "key-a",
            "--model",
            "gemini-test",
        ],
    )

    assert result.exit_code == 0, result.output
    assert out_path.read_text(encoding="utf-8") == "KO:Hello\n\nKO:World\nKO:Hello\n"
    assert "Translations written:" in result.output
    assert "Model: gemini-test" in result.output
    assert "Texts: 4" in result.output
    assert "Model calls: 1 (failed: 0)" in result.output
    assert "[progress] command=translate update=1" in result.output
    assert [call.batch for call in fake_provider.calls] == [["Hello", "World"]]


def test_translate_json_input_round_trips_format_and_uses_cache(
    tmp_path: Path, database_path: Path, fake_provider: FakeProvider
) -> None:
    """JSON arrays should come back as JSON; a rerun should be served from the cache."""

    input_path = tmp_path / "strings.json"
    input_path.write_text(json.dumps(["Line one\nLine two", "Ｏｋ"]), encoding="utf-8")
    out_path = tmp_path / "strings.ko.json"
    arguments = [
        "translate",
        str(input_path),
        "--out",
        str(out_path),
        "--database",
        str(database_path),
        "--api-key",
        "key-a",
    ]

    first = CliRunner().invoke(app, arguments)
    second = CliRunner().invoke(app, arguments)

    assert first.exit_code == 0, first.output
    assert second.exit_code == 0, second.output
    assert json.loads(out_path.read_text(encoding="utf-8")) == ["KO:Line one\nLine two", "KO:Ok"]
    assert len(fake_provider.calls) == 1
    assert fake_provider.calls[0].batch == ["Line one\\nLine two", "Ok"]
    assert "Cache hits: 2 / misses: 0" in second.output


def test_translate_prints_to_stdout_without_out(
    tmp_path: Path, database_path: Path
) -> None:
    """Without `--out`, translations should be printed."""

    input_path = tmp_path / "strings.txt"
    input_path.write_text("Cat\n", encoding="utf-8")

    result = CliRunner().invoke(
        app,
        ["translate", str(input_path), "--database", str(database_path), "--api-key", "k"],
    )

    assert result.exit_code == 0, result.output
    assert "KO:Cat" in result.output


def test_translate_uses_stored_api_key_and_can_store_a_new_one(
    tmp_path: Path, database_path: Path, fake_provider: FakeProvider, credential_store
) -> None:
    """Secure storage should supply keys; `--store-api-key` should persist CLI keys."""

    input_path = tmp_path / "strings.txt"
    input_path.write_text("one\n", encoding="utf-8")
    credential_store.set_api_key("stored-key")

    stored_run = CliRunner().invoke(
        app, ["translate", str(input_path), "--database", str(database_path)]
    )
    input_path.write_text("two\n", encoding="utf-8")
    cli_run = CliRunner().invoke(
        app,
        [
            "translate",
            str(input_path),
            "--database",
            str(database_path),
            "--api-key",
            "new-1 new-2",
            "--store-api-key",
        ],
    )

    assert stored_run.exit_code == 0, stored_run.output
    assert cli_run.exit_code == 0, cli_run.output
    assert [call.api_key for call in fake_provider.calls] == ["stored-key", "new-1"]
    assert credential_store.get_api_key() == "new-1 new-2"
    assert "Stored API key in secure credential storage." in cli_run.output


def test_translate_with_example_and_prompt_presets(
    tmp_path: Path, database_path: Path, fake_provider: FakeProvider
) -> None:
    """Stored presets should shape the prompt of a translate run."""

    runner = CliRunner()
    examples_path = tmp_path / "examples.json"
    examples_path.write_text(
        json.dumps({"English": {"sourceLines": ["Hi"], "resultLines": ["안녕"]}}),
        encoding="utf-8",
    )
    template_path = tmp_path / "template.txt"
    template_path.write_text(
        "<|role_start:system|>Translate {{language::source}} to {{language::target}}<|role_end|>\n"
        "{{example::source}}\n{{example::result}}\n"
        "<|role_start:user|>{{content}}<|role_end|>\n",
        encoding="utf-8",
    )
    input_path = tmp_path / "strings.txt"
    input_path.write_text("Bye\n", encoding="utf-8")
    database = ["--database", str(database_path)]

    created_examples = runner.invoke(
        app, ["presets", "create", "greetings", "--examples-file", str(examples_path), *database]
    )
    created_prompt = runner.invoke(
        app, ["prompts", "create", "plain", str(template_path), *database]
    )
    translated = runner.invoke(
        app,
        [
            "translate",
            str(input_path),
            "--api-key",
            "k",
            "--example-preset",
            "greetings",
            "--prompt-preset",
            "plain",
            *database,
        ],
    )

    assert created_examples.exit_code == 0, created_examples.output
    assert created_prompt.exit_code == 0, created_prompt.output
    assert translated.exit_code == 0, translated.output
    call = fake_provider.calls[0]
    assert call.system_instruction == "Translate English to Korean"
    assert [(turn.role, turn.parts) for turn in call.contents] == [
        ("user", ("<|1|>Hi",)),
        ("model", ("<|1|>안녕",)),
        ("user", ("<|1|>Bye",)),
    ]
