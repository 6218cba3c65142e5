"""Unit tests for the memory LRU tier and the two-tier cache facade."""

from __future__ import annotations

import asyncio

from tests.fakes import FailingTranslationStore
from transbatch.cache.manager import TranslationCache
from transbatch.cache.memory import MemoryTranslationCache
from transbatch.models.datatypes import FileInfo, TranslationExport, TranslationSearch


class ManualClock:
    """Settable monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_memory_cache_evicts_least_recently_used() -> None:
    """Reading an entry should protect it from the next eviction."""

    memory = MemoryTranslationCache(max_items=2)
    memory.set("a", "A")
    memory.set("b", "B")

    assert memory.get("a") == "A"
    memory.set("c", "C")

    assert memory.get("b") is None
    assert memory.get_many(["a", "b", "c"]) == {"a": "A", "c": "C"}
    assert len(memory) == 2


def test_memory_cache_expires_entries_and_refreshes_age_on_read() -> None:
    """Entries older than the TTL should vanish; reads restart the TTL."""

    clock = ManualClock()
    memory = MemoryTranslationCache(ttl_seconds=10.0, clock=clock)
    memory.set("kept", "K")
    memory.set("stale", "S")

    clock.now = 8.0
    assert memory.get("kept") == "K"
    clock.now = 15.0

    assert memory.get("kept") == "K"
    assert memory.get("stale") is None
    assert len(memory) == 1


def test_memory_cache_treats_empty_values_as_misses() -> None:
    """An empty stored value should not count as a hit."""

    memory = MemoryTranslationCache()
    memory.set("failed", "")

    assert memory.get("failed") is None


def test_keys_that_normalize_to_empty_are_hits_returning_the_text(translation_cache) -> None:
    """Texts made only of whitespace and line breaks should bypass storage."""

    assert asyncio.run(translation_cache.get(" \n ")) == " \n "
    assert asyncio.run(translation_cache.get_many(["", "x"])) == {"": "", "x": None}

    asyncio.run(translation_cache.set_many({"  ": "ignored"}))
    assert asyncio.run(translation_cache.search()).total == 0


def test_durable_hits_back_fill_the_memory_tier(translation_store) -> None:
    """A durable hit should be copied into memory for later reads."""

    translation_store.set_many({"Hello": "안녕"})
    cache = TranslationCache(translation_store, MemoryTranslationCache())

    assert asyncio.run(cache.get_many(["Hello\n", "Other"])) == {"Hello\n": "안녕", "Other": None}
    assert cache.memory.get("Hello") == "안녕"


def test_failed_writes_store_empty_targets_and_read_as_misses(
    translation_cache, translation_store
) -> None:
    """Failure writes should leave a history row but never serve a translation."""

    asyncio.run(translation_cache.set("Hi", "안녕"))
    asyncio.run(translation_cache.set_many({"Hi": ""}, success=False, model="m"))

    assert asyncio.run(translation_cache.get("Hi")) is None
    assert translation_cache.memory.get("Hi") is None
    history = translation_store.history_for_source("Hi")
    assert [entry.success for entry in history] == [False, True]


def test_durable_errors_degrade_to_misses_and_no_ops() -> None:
    """A broken database should not break reads or writes through the facade."""

    store = FailingTranslationStore()
    cache = TranslationCache(store, MemoryTranslationCache())  # type: ignore[arg-type]

    assert asyncio.run(cache.get("text")) is None
    assert asyncio.run(cache.get_many(["text"])) == {"text": None}
    asyncio.run(cache.set_many({"text": "translated"}))

    assert cache.memory.get("text") == "translated"
    assert store.calls == ["get", "get_many", "set_many"]


def test_durable_errors_degrade_management_operations_to_empty_results() -> None:
    """Management calls through a broken database should report nothing found or removed."""

    store = FailingTranslationStore()
    cache = TranslationCache(store, MemoryTranslationCache())  # type: ignore[arg-type]
    cache.memory.set("text", "translated")

    assert asyncio.run(cache.delete_translations([1, 2])) == 0
    assert asyncio.run(
        cache.delete_matching(TranslationSearch(search_type="source", search_value="t"))
    ) == 0
    assert asyncio.run(cache.clear()) == 0

    assert len(cache.memory) == 0
    assert asyncio.run(cache.update_translation(1, "new")) is None
    assert asyncio.run(cache.search(page=2, per_page=5)).total == 0
    assert asyncio.run(cache.export_translations()) == []
    assert store.calls == [
        "delete_by_ids",
        "delete_matching",
        "clear",
        "get_record",
        "search",
        "export",
    ]


def test_writes_record_file_info_and_model(translation_cache, translation_store) -> None:
    """Writes should carry origin file and model onto the durable record."""

    asyncio.run(
        translation_cache.set_many(
            {"one": "하나"},
            file_info=FileInfo.from_path("/data/strings.json"),
            model="gemini-test",
        )
    )

    record = translation_store.search().items[0]
    assert record.model == "gemini-test"
    assert record.file_info == FileInfo(file_name="strings.json", file_path="/data/strings.json")


def test_update_delete_and_import_keep_memory_consistent(translation_cache) -> None:
    """Management operations should invalidate or refresh memory entries."""

    asyncio.run(translation_cache.set_many({"a": "A", "b": "B", "c": "C"}))
    records = {
        record.source: record for record in asyncio.run(translation_cache.search()).items
    }

    updated = asyncio.run(translation_cache.update_translation(records["a"].id, "A2"))
    assert updated is not None and updated.target == "A2"
    assert translation_cache.memory.get("a") == "A2"
    assert asyncio.run(translation_cache.update_translation(9999, "x")) is None

    assert asyncio.run(translation_cache.delete_translations([records["b"].id])) == 1
    assert translation_cache.memory.get("b") is None
    assert asyncio.run(translation_cache.get("b")) is None

    applied = asyncio.run(
        translation_cache.import_translations(
            [
                TranslationExport(id=records["c"].id, source="c", target="C2"),
                TranslationExport(id=records["c"].id, source="mismatch", target="nope"),
            ]
        )
    )
    assert applied == 1
    assert asyncio.run(translation_cache.get("c")) == "C2"

    removed = asyncio.run(
        translation_cache.delete_matching(TranslationSearch(search_type="source", search_value="c"))
    )
    assert removed == 1
    assert asyncio.run(translation_cache.clear()) == 1
    assert len(translation_cache.memory) == 0


def test_invalidate_drops_memory_entries_but_keeps_durable_rows(translation_cache) -> None:
    """Invalidated texts should be re-read from the durable store and back-filled."""

    asyncio.run(translation_cache.set_many({"x": "X", "y": "Y", "z": "Z"}))

    asyncio.run(translation_cache.invalidate("x"))
    asyncio.run(translation_cache.invalidate_many(["y", "z"]))

    assert len(translation_cache.memory) == 0
    assert asyncio.run(translation_cache.get("x")) == "X"
    assert translation_cache.memory.get("x") == "X"

    record_id = asyncio.run(translation_cache.search()).items[0].id
    record = asyncio.run(translation_cache.get_record(record_id))
    assert record is not None and record.target in {"X", "Y", "Z"}
    assert asyncio.run(translation_cache.get_record(9999)) is None
