"""Durable example preset repository.

Responsibilities:
- Create, list, load, update, and delete named example presets.
- Serialize per-language example pairs as JSON text.
"""

from __future__ import annotations

import json
from typing import Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicatePresetError, PresetNotFoundError
from ..models.datatypes import ExamplePair, ExamplePreset
from .database import Database
from .schema import ExamplePresetRow, local_now


def _encode_examples(examples: Mapping[str, ExamplePair]) -> str:
    """Serialize example pairs keyed by language."""

    return json.dumps(
        {language: pair.as_payload() for language, pair in examples.items()},
        ensure_ascii=False,
    )


def _decode_examples(raw: str) -> dict[str, ExamplePair]:
    """Deserialize example pairs keyed by language, tolerating malformed entries."""

    payload = json.loads(raw or "{}")
    if not isinstance(payload, dict):
        return {}
    return {
        str(language): ExamplePair.from_payload(value)
        for language, value in payload.items()
        if isinstance(value, dict)
    }


def _to_preset(row: ExamplePresetRow) -> ExamplePreset:
    """Convert an ORM row into an immutable preset."""

    return ExamplePreset(
        id=row.id,
        name=row.name,
        description=row.description,
        examples=_decode_examples(row.examples),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class ExamplePresetRepository:
    """CRUD access to `example_preset` rows."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def create(
        self,
        name: str,
        examples: Mapping[str, ExamplePair],
        description: str | None = None,
    ) -> ExamplePreset:
        """Insert a new preset.

        Raises:
            DuplicatePresetError: If the name is already used.
        """

        try:
            with self._database.session() as session:
                row = ExamplePresetRow(
                    name=name,
                    description=description,
                    examples=_encode_examples(examples),
                )
                session.add(row)
                session.flush()
                return _to_preset(row)
        except IntegrityError as exc:
            raise DuplicatePresetError(f"Example preset `{name}` already exists.") from exc

    def list_presets(self) -> list[ExamplePreset]:
        """Return every preset in creation order."""

        with self._database.session() as session:
            rows = session.scalars(select(ExamplePresetRow).order_by(ExamplePresetRow.id))
            return [_to_preset(row) for row in rows]

    def get(self, preset_id: int) -> ExamplePreset | None:
        """Return a preset by id."""

        with self._database.session() as session:
            row = session.get(ExamplePresetRow, preset_id)
            return _to_preset(row) if row is not None else None

    def get_by_name(self, name: str) -> ExamplePreset | None:
        """Return a preset by unique name."""

        with self._database.session() as session:
            row = session.scalar(select(ExamplePresetRow).where(ExamplePresetRow.name == name))
            return _to_preset(row) if row is not None else None

    def update(
        self,
        preset_id: int,
        *,
        examples: Mapping[str, ExamplePair] | None = None,
        description: str | None = None,
        name: str | None = None,
    ) -> ExamplePreset:
        """Update the given fields of a preset.

        Raises:
            PresetNotFoundError: If the id does not exist.
            DuplicatePresetError: If `name` belongs to another preset.
        """

        with self._database.session() as session:
            row = session.get(ExamplePresetRow, preset_id)
            if row is None:
                raise PresetNotFoundError(f"Example preset id {preset_id} does not exist.")
            if name is not None and name != row.name:
                clash = session.scalar(
                    select(ExamplePresetRow.id).where(ExamplePresetRow.name == name)
                )
                if clash is not None:
                    raise DuplicatePresetError(f"Example preset `{name}` already exists.")
                row.name = name
            if examples is not None:
                row.examples = _encode_examples(examples)
            if description is not None:
                row.description = description
            row.updated_at = local_now()
            session.flush()
            return _to_preset(row)

    def delete(self, preset_id: int) -> bool:
        """Delete a preset and report whether it existed."""

        with self._database.session() as session:
            row = session.get(ExamplePresetRow, preset_id)
            if row is None:
                return False
            session.delete(row)
            return True
