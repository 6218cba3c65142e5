"""Integration tests for `cache` management CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from transbatch.cli import app


def _seed(tmp_path: Path, database_path: Path, lines: list[str]) -> None:
    """Translate lines through the fake provider so the cache holds them."""

    input_path = tmp_path / "seed.txt"
    input_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    result = CliRunner().invoke(
        app,
        [
            "translate",
            str(input_path),
            "--out",
            str(tmp_path / "seed.out.txt"),
            "--database",
            str(database_path),
            "--api-key",
            "k",
        ],
    )
    assert result.exit_code == 0, result.output


def _export(tmp_path: Path, database_path: Path, *options: str) -> list[dict[str, object]]:
    """Export the cache and return the decoded rows."""

    export_path = tmp_path / "export.json"
    result = CliRunner().invoke(
        app, ["cache", "export", str(export_path), "--database", str(database_path), *options]
    )
    assert result.exit_code == 0, result.output
    return json.loads(export_path.read_text(encoding="utf-8"))


def test_cache_list_searches_and_paginates(tmp_path: Path, database_path: Path) -> None:
    """Listing should show seeded rows and honor prefix filters."""

    _seed(tmp_path, database_path, ["apple", "apricot", "banana"])
    runner = CliRunner()

    listed = runner.invoke(app, ["cache", "list", "--database", str(database_path)])
    filtered = runner.invoke(
        app,
        [
            "cache",
            "list",
            "--search-value",
            "ap",
            "--per-page",
            "1",
            "--database",
            str(database_path),
        ],
    )
    by_file = runner.invoke(
        app,
        [
            "cache",
            "list",
            "--search-type",
            "file_name",
            "--search-value",
            "seed",
            "--database",
            str(database_path),
        ],
    )

    assert listed.exit_code == 0, listed.output
    assert "Page 1/1 (3 cached translations)" in listed.output
    assert "[ok] banana => KO:banana" in listed.output
    assert "Page 1/2 (2 cached translations)" in filtered.output
    assert "(3 cached translations)" in by_file.output


def test_cache_export_edit_import_and_history(tmp_path: Path, database_path: Path) -> None:
    """Edited exports should import back and appear in the record history."""

    _seed(tmp_path, database_path, ["cat", "dog"])
    rows = _export(tmp_path, database_path)
    assert [(row["source"], row["target"]) for row in rows] == [
        ("cat", "KO:cat"),
        ("dog", "KO:dog"),
    ]

    rows[0]["target"] = "고양이"
    rows[1]["source"] = "renamed"
    import_path = tmp_path / "import.json"
    import_path.write_text(json.dumps(rows, ensure_ascii=False), encoding="utf-8")
    runner = CliRunner()

    imported = runner.invoke(
        app, ["cache", "import", str(import_path), "--database", str(database_path)]
    )
    history = runner.invoke(
        app, ["cache", "history", str(rows[0]["id"]), "--database", str(database_path)]
    )

    assert imported.exit_code == 0, imported.output
    assert "Imported 1 of 2 row(s)." in imported.output
    assert [row["target"] for row in _export(tmp_path, database_path)] == ["고양이", "KO:dog"]
    assert history.exit_code == 0, history.output
    assert "[ok] 고양이" in history.output
    assert "[ok] KO:cat" in history.output


def test_cache_update_delete_and_clear(tmp_path: Path, database_path: Path) -> None:
    """Id-based edits and deletions should be reflected in later exports."""

    _seed(tmp_path, database_path, ["red", "green", "blue"])
    ids = {row["source"]: row["id"] for row in _export(tmp_path, database_path)}
    runner = CliRunner()
    database = ["--database", str(database_path)]

    updated = runner.invoke(app, ["cache", "update", str(ids["red"]), "빨강", *database])
    missing = runner.invoke(app, ["cache", "update", "9999", "x", *database])
    deleted = runner.invoke(app, ["cache", "delete", str(ids["green"]), *database])
    matched = runner.invoke(
        app, ["cache", "delete", "--matching", "--search-value", "bl", *database]
    )

    assert updated.exit_code == 0, updated.output
    assert f"Updated translation {ids['red']}." in updated.output
    assert missing.exit_code == 1
    assert "does not exist" in missing.output
    assert "Deleted 1 cached translation(s)." in deleted.output
    assert "Deleted 1 cached translation(s)." in matched.output
    assert [(row["source"], row["target"]) for row in _export(tmp_path, database_path)] == [
        ("red", "빨강")
    ]

    cleared = runner.invoke(app, ["cache", "clear", "--yes", *database])
    assert "Cleared 1 cached translation(s)." in cleared.output
    assert _export(tmp_path, database_path) == []


def test_cache_clear_asks_for_confirmation(tmp_path: Path, database_path: Path) -> None:
    """Declining the prompt should leave the cache untouched."""

    _seed(tmp_path, database_path, ["keep"])

    declined = CliRunner().invoke(
        app, ["cache", "clear", "--database", str(database_path)], input="n\n"
    )

    assert declined.exit_code == 1
    assert len(_export(tmp_path, database_path)) == 1


def test_cache_rejects_bad_input(tmp_path: Path, database_path: Path) -> None:
    """Invalid delete modes, search types, and import payloads should fail with diagnostics."""

    runner = CliRunner()
    database = ["--database", str(database_path)]
    bad_import = tmp_path / "bad.json"
    bad_import.write_text(json.dumps([{"id": "x", "source": "a", "target": "b"}]), encoding="utf-8")

    no_mode = runner.invoke(app, ["cache", "delete", *database])
    bad_type = runner.invoke(app, ["cache", "list", "--search-type", "color", *database])
    bad_date = runner.invoke(
        app, ["cache", "list", "--search-type", "date", "--start-date", "2024-01-01", *database]
    )
    bad_rows = runner.invoke(app, ["cache", "import", str(bad_import), *database])

    assert no_mode.exit_code == 1
    assert "not both or neither" in no_mode.output
    assert bad_type.exit_code == 1
    assert "Unsupported search type `color`" in bad_type.output
    assert bad_date.exit_code == 1
    assert "YYYY/MM/DD" in bad_date.output
    assert bad_rows.exit_code == 1
    assert "integer `id`" in bad_rows.output
