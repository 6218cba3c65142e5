"""Two-tier translation cache facade.

Responsibilities:
- Serve cache-aside reads from memory first, then the durable store, back-filling memory.
- Write both tiers concurrently, recording failures as empty targets.
- Degrade durable-tier errors to misses and no-ops, logging them.
- Expose id-based management, search, history, export, and import.

Keys are normalized with `normalize_cache_key`; a text whose key is empty is
always a hit that returns the text itself and is never written.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, Mapping, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from ..models.datatypes import (
    FileInfo,
    TranslationExport,
    TranslationHistoryEntry,
    TranslationPage,
    TranslationRecord,
    TranslationSearch,
)
from ..storage.translations import SqliteTranslationStore
from ..telemetry.logger import EventLogger
from ..text.normalizer import normalize_cache_key
from .memory import MemoryTranslationCache


T = TypeVar("T")


class TranslationCache:
    """Cache-aside facade over the memory LRU and the durable SQLite store."""

    def __init__(
        self,
        store: SqliteTranslationStore,
        memory: MemoryTranslationCache | None = None,
        logger: EventLogger | None = None,
    ) -> None:
        self._store = store
        self._memory = memory if memory is not None else MemoryTranslationCache()
        self._logger = logger or EventLogger()

    @property
    def memory(self) -> MemoryTranslationCache:
        """Return the in-process tier."""

        return self._memory

    async def get(self, text: str) -> str | None:
        """Return the cached translation for one text, or `None` on a miss."""

        key = normalize_cache_key(text)
        if not key:
            return text
        cached = self._memory.get(key)
        if cached is not None:
            return cached
        durable = await self._durable("get", self._store.get, key, default=None)
        if durable:
            self._memory.set(key, durable)
            return durable
        return None

    async def get_many(self, texts: Iterable[str]) -> dict[str, str | None]:
        """Return a `text -> translation | None` mapping covering every input text."""

        results: dict[str, str | None] = {}
        keys_by_text: dict[str, str] = {}
        for text in texts:
            key = normalize_cache_key(text)
            if key:
                keys_by_text[text] = key
            else:
                results[text] = text

        distinct_keys = list(dict.fromkeys(keys_by_text.values()))
        memory_hits = self._memory.get_many(distinct_keys)
        missing = [key for key in distinct_keys if key not in memory_hits]
        durable_hits: dict[str, str] = {}
        if missing:
            durable_hits = await self._durable(
                "get_many", self._store.get_many, missing, default={}
            )
            self._memory.set_many(durable_hits)

        for text, key in keys_by_text.items():
            results[text] = memory_hits.get(key) or durable_hits.get(key)
        return results

    async def set(
        self,
        text: str,
        value: str,
        *,
        success: bool = True,
        file_info: FileInfo | None = None,
        model: str | None = None,
    ) -> None:
        """Write one translation to both tiers."""

        await self.set_many({text: value}, success=success, file_info=file_info, model=model)

    async def set_many(
        self,
        entries: Mapping[str, str],
        *,
        success: bool = True,
        file_info: FileInfo | None = None,
        model: str | None = None,
    ) -> None:
        """Write translations to both tiers concurrently; durable writes add history."""

        normalized: dict[str, str] = {}
        for text, value in entries.items():
            key = normalize_cache_key(text)
            if key:
                normalized[key] = value
        if not normalized:
            return

        await asyncio.gather(
            self._write_memory(normalized, success),
            self._durable(
                "set_many",
                self._store.set_many,
                normalized,
                default=None,
                success=success,
                file_info=file_info,
                model=model,
            ),
        )

    async def invalidate(self, text: str) -> None:
        """Drop one text from the memory tier."""

        self._memory.delete(normalize_cache_key(text))

    async def invalidate_many(self, texts: Iterable[str]) -> None:
        """Drop several texts from the memory tier."""

        self._memory.delete_many(normalize_cache_key(text) for text in texts)

    async def clear(self) -> int:
        """Empty both tiers and return the number of durable records removed."""

        self._memory.clear()
        return await self._durable("clear", self._store.clear, default=0)

    async def get_record(self, translation_id: int) -> TranslationRecord | None:
        """Return one durable record by id."""

        return await self._durable(
            "get_record", self._store.get_record, translation_id, default=None
        )

    async def delete_translations(self, translation_ids: Sequence[int]) -> int:
        """Delete records by id, then invalidate their keys; return the count removed."""

        sources = await self._durable(
            "delete_by_ids", self._store.delete_by_ids, list(translation_ids), default=[]
        )
        self._memory.delete_many(sources)
        self._logger.info("cache", "delete", count=len(sources))
        return len(sources)

    async def delete_matching(self, search: TranslationSearch) -> int:
        """Delete every record matching `search`; return the count removed."""

        sources = await self._durable(
            "delete_matching", self._store.delete_matching, search, default=[]
        )
        self._memory.delete_many(sources)
        self._logger.info("cache", "delete", count=len(sources), search_type=search.search_type)
        return len(sources)

    async def update_translation(
        self,
        translation_id: int,
        target: str,
        source: str | None = None,
    ) -> TranslationRecord | None:
        """Overwrite one record's target and refresh the memory tier."""

        normalized_source = normalize_cache_key(source) if source is not None else None
        previous = await self.get_record(translation_id)
        if previous is None:
            return None
        updated = await self._durable(
            "update_translation",
            self._store.update_translation,
            translation_id,
            target,
            default=None,
            source=normalized_source,
        )
        self._memory.delete(previous.source)
        if updated is not None and updated.target:
            self._memory.set(updated.source, updated.target)
        return updated

    async def search(
        self,
        *,
        page: int = 1,
        per_page: int = 20,
        search: TranslationSearch | None = None,
    ) -> TranslationPage:
        """Return one page of durable records."""

        return await self._durable(
            "search",
            self._store.search,
            default=TranslationPage(items=(), total=0, page=page, per_page=per_page),
            page=page,
            per_page=per_page,
            search=search,
        )

    async def history_for_translation(
        self, translation_id: int
    ) -> list[TranslationHistoryEntry]:
        """Return a record's history, newest first."""

        return await self._durable(
            "history", self._store.history_for_translation, translation_id, default=[]
        )

    async def history_for_source(self, text: str) -> list[TranslationHistoryEntry]:
        """Return history written for a text's key, newest first."""

        return await self._durable(
            "history", self._store.history_for_source, normalize_cache_key(text), default=[]
        )

    async def export_translations(
        self, search: TranslationSearch | None = None
    ) -> list[TranslationExport]:
        """Return exportable rows matching `search`."""

        return await self._durable("export", self._store.export, search, default=[])

    async def import_translations(self, rows: Sequence[TranslationExport]) -> int:
        """Apply rows whose id and source match stored records; return the count applied."""

        applied = await self._durable(
            "import_rows", self._store.import_rows, list(rows), default=[]
        )
        for row in applied:
            if row.target:
                self._memory.set(row.source, row.target)
            else:
                self._memory.delete(row.source)
        self._logger.info("cache", "import", applied=len(applied), submitted=len(rows))
        return len(applied)

    async def _write_memory(self, entries: Mapping[str, str], success: bool) -> None:
        """Store successful non-empty values; drop keys written as failures."""

        for key, value in entries.items():
            if success and value:
                self._memory.set(key, value)
            else:
                self._memory.delete(key)

    async def _durable(
        self,
        operation: str,
        function: Callable[..., T],
        *args: Any,
        default: T,
        **kwargs: Any,
    ) -> T:
        """Run a durable-store call in a worker thread, logging and absorbing DB errors."""

        try:
            return await asyncio.to_thread(function, *args, **kwargs)
        except SQLAlchemyError as exc:
            self._logger.error(
                "cache",
                "durable_failure",
                error_type=type(exc).__name__,
                operation=operation,
            )
            return default
