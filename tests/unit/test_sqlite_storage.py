"""Unit tests for durable translation, example preset, and prompt preset storage."""

from __future__ import annotations

import pytest

from transbatch.errors import DuplicatePresetError, PresetNotFoundError
from transbatch.llm.prompts import DEFAULT_PROMPT
from transbatch.models.datatypes import ExamplePair, FileInfo, TranslationExport, TranslationSearch
from transbatch.storage.presets import ExamplePresetRepository
from transbatch.storage.prompt_presets import DEFAULT_PROMPT_PRESET_NAME, PromptPresetRepository
from transbatch.storage.translations import parse_search_date


def test_set_many_upserts_records_and_appends_history(translation_store) -> None:
    """Rewriting a key should update the record and add another history row."""

    translation_store.set_many({"apple": "사과"}, model="model-a")
    translation_store.set_many({"apple": "사과!"}, model="model-b")

    page = translation_store.search()
    assert page.total == 1
    record = page.items[0]
    assert record.target == "사과!"
    assert record.model == "model-b"
    history = translation_store.history_for_translation(record.id)
    assert [entry.target for entry in history] == ["사과!", "사과"]
    assert translation_store.get("apple") == "사과!"


def test_default_model_name_is_recorded_when_missing(translation_store) -> None:
    """Writes without a model should record `unknown`."""

    translation_store.set_many({"k": "v"})

    assert translation_store.search().items[0].model == "unknown"


def test_search_filters_by_prefix_and_file(translation_store) -> None:
    """Text filters should match prefixes; file filters should join file info."""

    translation_store.set_many(
        {"apple": "사과", "apricot": "살구"}, file_info=FileInfo.from_path("/a/fruit.txt")
    )
    translation_store.set_many({"banana": "바나나"}, file_info=FileInfo.from_path("/b/other.txt"))

    by_source = translation_store.search(search=TranslationSearch("source", "ap"))
    by_target = translation_store.search(search=TranslationSearch("target", "바"))
    by_file = translation_store.search(search=TranslationSearch("file_name", "fruit"))
    by_path = translation_store.search(search=TranslationSearch("file_path", "/b/"))

    assert {item.source for item in by_source.items} == {"apple", "apricot"}
    assert [item.source for item in by_target.items] == ["banana"]
    assert by_file.total == 2
    assert [item.source for item in by_path.items] == ["banana"]


def test_search_paginates_newest_first(translation_store) -> None:
    """Pages should follow last-access order with ties broken by id."""

    for index in range(5):
        translation_store.set_many({f"text-{index}": f"t{index}"})

    first = translation_store.search(page=1, per_page=2)
    last = translation_store.search(page=3, per_page=2)

    assert first.total == 5
    assert first.total_pages == 3
    assert [item.source for item in first.items] == ["text-4", "text-3"]
    assert [item.source for item in last.items] == ["text-0"]


def test_date_search_is_inclusive_and_validates_input(translation_store) -> None:
    """Date ranges should include whole days and reject malformed dates."""

    translation_store.set_many({"dated": "날짜"})

    wide = TranslationSearch("date", start_date="2000/01/01", end_date="2999/12/31")
    past = TranslationSearch("date", start_date="2000/01/01", end_date="2000/12/31")

    assert translation_store.search(search=wide).total == 1
    assert translation_store.search(search=past).total == 0
    with pytest.raises(ValueError, match="YYYY/MM/DD"):
        parse_search_date("2024-01-01")


def test_delete_cascades_history_and_returns_sources(translation_store) -> None:
    """Deleting by id should remove the record and its history rows."""

    translation_store.set_many({"gone": "x", "stay": "y"})
    gone = next(item for item in translation_store.search().items if item.source == "gone")

    assert translation_store.delete_by_ids([gone.id]) == ["gone"]
    assert translation_store.history_for_source("gone") == []
    assert translation_store.find_by_ids([gone.id]) == []
    assert translation_store.delete_matching(TranslationSearch("source", "st")) == ["stay"]
    assert translation_store.search().total == 0


def test_export_and_import_apply_only_matching_rows(translation_store) -> None:
    """Imports should skip rows whose id and source do not match a record."""

    translation_store.set_many({"one": "1", "two": "2"})
    exported = translation_store.export()

    assert [(row.source, row.target) for row in exported] == [("one", "1"), ("two", "2")]

    applied = translation_store.import_rows(
        [
            TranslationExport(id=exported[0].id, source="one", target="하나"),
            TranslationExport(id=exported[1].id, source="wrong", target="둘"),
            TranslationExport(id=999, source="three", target="셋"),
        ]
    )

    assert [row.source for row in applied] == ["one"]
    assert translation_store.get("one") == "하나"
    assert translation_store.get("two") == "2"
    assert len(translation_store.history_for_source("one")) == 2


def test_update_translation_can_rename_the_source(translation_store) -> None:
    """Manual edits should mark the record successful and may change its key."""

    translation_store.set_many({"old": ""}, success=False)
    record = translation_store.search().items[0]

    updated = translation_store.update_translation(record.id, "new target", source="renamed")

    assert updated is not None
    assert updated.source == "renamed"
    assert updated.success is True
    assert translation_store.get("renamed") == "new target"
    assert translation_store.get("old") is None


def test_example_presets_round_trip_and_reject_duplicates(database) -> None:
    """Presets should persist per-language pairs and keep names unique."""

    repository = ExamplePresetRepository(database)
    examples = {"English": ExamplePair(("Hello",), ("안녕",))}

    created = repository.create("greetings", examples, description="basic")

    loaded = repository.get_by_name("greetings")
    assert loaded is not None
    assert loaded.examples == examples
    assert loaded.description == "basic"
    with pytest.raises(DuplicatePresetError):
        repository.create("greetings", {})

    repository.create("other", {})
    with pytest.raises(DuplicatePresetError):
        repository.update(created.id, name="other")
    with pytest.raises(PresetNotFoundError):
        repository.update(999, description="x")

    assert repository.delete(created.id) is True
    assert repository.delete(created.id) is False
    assert [preset.name for preset in repository.list_presets()] == ["other"]


def test_prompt_presets_seed_default_once(database) -> None:
    """The default prompt preset should be created once and hold the built-in template."""

    repository = PromptPresetRepository(database)

    first = repository.ensure_default()
    second = repository.ensure_default()

    assert first.id == second.id
    assert first.name == DEFAULT_PROMPT_PRESET_NAME
    assert first.prompt == DEFAULT_PROMPT
    custom = repository.create("terse", "<|role_start:user|>{{content}}<|role_end|>")
    with pytest.raises(DuplicatePresetError):
        repository.create("terse", "x")
    renamed = repository.update(custom.id, name="short")
    assert renamed.name == "short"
    assert repository.delete(custom.id) is True
    assert [preset.name for preset in repository.list_presets()] == [DEFAULT_PROMPT_PRESET_NAME]
