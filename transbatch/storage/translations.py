"""Durable translation store backed by SQLite.

Responsibilities:
- Read and upsert translations keyed by normalized source text.
- Append a history row for every write in the same transaction.
- Provide id-based management, search, export, and import operations.

All methods are blocking; async callers run them in worker threads.
"""

from __future__ import annotations

from datetime import datetime, time
from typing import Iterable, Mapping, Sequence

from sqlalchemy import Select, delete, func, select
from sqlalchemy.orm import Session, selectinload

from ..models.datatypes import (
    FileInfo,
    TranslationExport,
    TranslationHistoryEntry,
    TranslationPage,
    TranslationRecord,
    TranslationSearch,
)
from .database import Database
from .schema import FileInfoRow, TranslationHistoryRow, TranslationRow, local_now


DEFAULT_MODEL_NAME = "unknown"
_DATE_FORMAT = "%Y/%m/%d"
# SQLite limits bound parameters per statement; stay well below the default cap.
_IN_CLAUSE_CHUNK_SIZE = 500


def parse_search_date(value: str) -> datetime:
    """Parse a `YYYY/MM/DD` search date at midnight."""

    try:
        return datetime.strptime(value.strip(), _DATE_FORMAT)
    except ValueError as exc:
        raise ValueError(f"Invalid date `{value}`; expected YYYY/MM/DD.") from exc


def _chunks(values: Sequence[str], size: int = _IN_CLAUSE_CHUNK_SIZE) -> Iterable[Sequence[str]]:
    """Yield fixed-size slices of `values`."""

    for start in range(0, len(values), size):
        yield values[start : start + size]


def _to_record(row: TranslationRow) -> TranslationRecord:
    """Convert an ORM row into an immutable record."""

    file_info = None
    if row.file_info is not None:
        file_info = FileInfo(file_name=row.file_info.file_name, file_path=row.file_info.file_path)
    return TranslationRecord(
        id=row.id,
        source=row.source,
        target=row.target,
        success=row.success,
        model=row.model,
        file_info=file_info,
        created_at=row.created_at,
        last_accessed_at=row.last_accessed_at,
    )


def _to_history_entry(row: TranslationHistoryRow) -> TranslationHistoryEntry:
    """Convert an ORM history row into an immutable entry."""

    return TranslationHistoryEntry(
        id=row.id,
        translation_id=row.translation_id,
        source=row.source,
        target=row.target,
        success=row.success,
        model=row.model,
        error=row.error,
        created_at=row.created_at,
    )


class SqliteTranslationStore:
    """Translation persistence with per-write history."""

    def __init__(self, database: Database) -> None:
        """Bind the store to an initialized database."""

        self._database = database

    def get(self, source: str) -> str | None:
        """Return the stored target for one key; failed (empty) targets read as missing."""

        return self.get_many([source]).get(source)

    def get_many(self, sources: Sequence[str]) -> dict[str, str]:
        """Return stored non-empty targets for the given keys."""

        distinct = list(dict.fromkeys(sources))
        found: dict[str, str] = {}
        if not distinct:
            return found
        with self._database.session() as session:
            for chunk in _chunks(distinct):
                rows = session.execute(
                    select(TranslationRow.source, TranslationRow.target).where(
                        TranslationRow.source.in_(chunk)
                    )
                )
                for source, target in rows:
                    if target:
                        found[source] = target
        return found

    def set_many(
        self,
        entries: Mapping[str, str],
        *,
        success: bool = True,
        file_info: FileInfo | None = None,
        model: str | None = None,
    ) -> None:
        """Upsert translations and append one history row per entry."""

        if not entries:
            return
        model_name = model or DEFAULT_MODEL_NAME
        now = local_now()
        sources = list(entries)
        with self._database.session() as session:
            file_row = self._find_or_create_file_info(session, file_info)
            existing: dict[str, TranslationRow] = {}
            for chunk in _chunks(sources):
                for row in session.scalars(
                    select(TranslationRow).where(TranslationRow.source.in_(chunk))
                ):
                    existing[row.source] = row

            for source in sources:
                target = entries[source]
                row = existing.get(source)
                if row is None:
                    row = TranslationRow(
                        source=source,
                        target=target,
                        success=success,
                        model=model_name,
                        file_info=file_row,
                        created_at=now,
                        last_accessed_at=now,
                    )
                    session.add(row)
                    existing[source] = row
                else:
                    row.target = target
                    row.success = success
                    row.model = model_name
                    row.last_accessed_at = now
                    if file_row is not None:
                        row.file_info = file_row
                session.add(
                    TranslationHistoryRow(
                        translation=row,
                        source=source,
                        target=target,
                        success=success,
                        model=model_name,
                        created_at=now,
                    )
                )

    def get_record(self, translation_id: int) -> TranslationRecord | None:
        """Return one record by id."""

        with self._database.session() as session:
            row = session.get(
                TranslationRow, translation_id, options=[selectinload(TranslationRow.file_info)]
            )
            return _to_record(row) if row is not None else None

    def find_by_ids(self, translation_ids: Sequence[int]) -> list[TranslationRecord]:
        """Return records for the given ids, in ascending id order."""

        if not translation_ids:
            return []
        with self._database.session() as session:
            rows = session.scalars(
                select(TranslationRow)
                .options(selectinload(TranslationRow.file_info))
                .where(TranslationRow.id.in_(list(translation_ids)))
                .order_by(TranslationRow.id)
            )
            return [_to_record(row) for row in rows]

    def update_translation(
        self,
        translation_id: int,
        target: str,
        *,
        source: str | None = None,
    ) -> TranslationRecord | None:
        """Overwrite one record's target (and optionally its source) with history.

        Returns:
            The updated record, or `None` when the id does not exist.
        """

        with self._database.session() as session:
            row = session.get(TranslationRow, translation_id)
            if row is None:
                return None
            now = local_now()
            if source is not None:
                row.source = source
            row.target = target
            row.success = True
            row.last_accessed_at = now
            session.add(
                TranslationHistoryRow(
                    translation=row,
                    source=row.source,
                    target=target,
                    success=True,
                    model=row.model,
                    created_at=now,
                )
            )
            session.flush()
            return _to_record(row)

    def delete_by_ids(self, translation_ids: Sequence[int]) -> list[str]:
        """Delete records (and, by cascade, their history); return deleted sources."""

        if not translation_ids:
            return []
        with self._database.session() as session:
            sources = list(
                session.scalars(
                    select(TranslationRow.source).where(
                        TranslationRow.id.in_(list(translation_ids))
                    )
                )
            )
            session.execute(
                delete(TranslationRow).where(TranslationRow.id.in_(list(translation_ids)))
            )
            return sources

    def delete_matching(self, search: TranslationSearch) -> list[str]:
        """Delete every record matching `search`; return deleted sources."""

        with self._database.session() as session:
            id_query = self._apply_search(select(TranslationRow.id), search)
            matching_ids = list(session.scalars(id_query))
        return self.delete_by_ids(matching_ids)

    def clear(self) -> int:
        """Delete every translation, history row, and file info; return records removed."""

        with self._database.session() as session:
            removed = session.scalar(select(func.count()).select_from(TranslationRow)) or 0
            session.execute(delete(TranslationHistoryRow))
            session.execute(delete(TranslationRow))
            session.execute(delete(FileInfoRow))
            return removed

    def search(
        self,
        *,
        page: int = 1,
        per_page: int = 20,
        search: TranslationSearch | None = None,
    ) -> TranslationPage:
        """Return one page of records, most recently written first."""

        active_search = search if search is not None else TranslationSearch()
        page = max(1, page)
        per_page = max(1, per_page)
        with self._database.session() as session:
            count_query = self._apply_search(
                select(func.count(TranslationRow.id)), active_search
            )
            total = session.scalar(count_query) or 0
            rows_query = (
                self._apply_search(
                    select(TranslationRow).options(selectinload(TranslationRow.file_info)),
                    active_search,
                )
                .order_by(TranslationRow.last_accessed_at.desc(), TranslationRow.id.desc())
                .offset((page - 1) * per_page)
                .limit(per_page)
            )
            items = tuple(_to_record(row) for row in session.scalars(rows_query))
        return TranslationPage(items=items, total=total, page=page, per_page=per_page)

    def history_for_translation(self, translation_id: int) -> list[TranslationHistoryEntry]:
        """Return history rows of one record, newest first."""

        with self._database.session() as session:
            rows = session.scalars(
                select(TranslationHistoryRow)
                .where(TranslationHistoryRow.translation_id == translation_id)
                .order_by(TranslationHistoryRow.created_at.desc(), TranslationHistoryRow.id.desc())
            )
            return [_to_history_entry(row) for row in rows]

    def history_for_source(self, source: str) -> list[TranslationHistoryEntry]:
        """Return history rows written for a source key, newest first."""

        with self._database.session() as session:
            rows = session.scalars(
                select(TranslationHistoryRow)
                .where(TranslationHistoryRow.source == source)
                .order_by(TranslationHistoryRow.created_at.desc(), TranslationHistoryRow.id.desc())
            )
            return [_to_history_entry(row) for row in rows]

    def export(self, search: TranslationSearch | None = None) -> list[TranslationExport]:
        """Return `(id, source, target)` rows matching `search`, in id order."""

        active_search = search if search is not None else TranslationSearch()
        with self._database.session() as session:
            query = self._apply_search(
                select(TranslationRow.id, TranslationRow.source, TranslationRow.target),
                active_search,
            ).order_by(TranslationRow.id)
            return [
                TranslationExport(id=row_id, source=source, target=target)
                for row_id, source, target in session.execute(query)
            ]

    def import_rows(self, rows: Sequence[TranslationExport]) -> list[TranslationExport]:
        """Apply rows whose id exists with the same source; return the rows applied."""

        applied: list[TranslationExport] = []
        if not rows:
            return applied
        with self._database.session() as session:
            now = local_now()
            for item in rows:
                row = session.get(TranslationRow, item.id)
                if row is None or row.source != item.source:
                    continue
                row.target = item.target
                row.success = True
                row.last_accessed_at = now
                session.add(
                    TranslationHistoryRow(
                        translation=row,
                        source=row.source,
                        target=item.target,
                        success=True,
                        model=row.model,
                        created_at=now,
                    )
                )
                applied.append(item)
        return applied

    @staticmethod
    def _find_or_create_file_info(
        session: Session, file_info: FileInfo | None
    ) -> FileInfoRow | None:
        """Return the file info row for a path, inserting it when new."""

        if file_info is None:
            return None
        row = session.scalar(
            select(FileInfoRow).where(FileInfoRow.file_path == file_info.file_path)
        )
        if row is None:
            row = FileInfoRow(file_name=file_info.file_name, file_path=file_info.file_path)
            session.add(row)
        return row

    @staticmethod
    def _apply_search(query: Select, search: TranslationSearch) -> Select:
        """Apply prefix or date-range filters to a translation query."""

        value = search.search_value
        if search.search_type == "source" and value:
            return query.where(TranslationRow.source.like(f"{value}%"))
        if search.search_type == "target" and value:
            return query.where(TranslationRow.target.like(f"{value}%"))
        if search.search_type in {"file_name", "file_path"} and value:
            column = (
                FileInfoRow.file_name
                if search.search_type == "file_name"
                else FileInfoRow.file_path
            )
            return query.join(TranslationRow.file_info).where(column.like(f"{value}%"))
        if search.search_type == "date":
            if search.start_date:
                query = query.where(
                    TranslationRow.last_accessed_at >= parse_search_date(search.start_date)
                )
            if search.end_date:
                end_of_day = datetime.combine(
                    parse_search_date(search.end_date).date(), time.max
                )
                query = query.where(TranslationRow.last_accessed_at <= end_of_day)
        return query
