"""Durable prompt preset repository.

Responsibilities:
- Store named prompt templates.
- Seed the `Default` preset with the built-in translation template.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicatePresetError, PresetNotFoundError
from ..llm.prompts import DEFAULT_PROMPT
from ..models.datatypes import PromptPreset
from .database import Database
from .schema import PromptPresetRow


DEFAULT_PROMPT_PRESET_NAME = "Default"


def _to_preset(row: PromptPresetRow) -> PromptPreset:
    """Convert an ORM row into an immutable preset."""

    return PromptPreset(id=row.id, name=row.name, prompt=row.prompt)


class PromptPresetRepository:
    """CRUD access to `prompt_presets` rows."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def ensure_default(self) -> PromptPreset:
        """Create the default preset when missing and return it."""

        existing = self.get_by_name(DEFAULT_PROMPT_PRESET_NAME)
        if existing is not None:
            return existing
        return self.create(DEFAULT_PROMPT_PRESET_NAME, DEFAULT_PROMPT)

    def create(self, name: str, prompt: str) -> PromptPreset:
        """Insert a new prompt preset.

        Raises:
            DuplicatePresetError: If the name is already used.
        """

        try:
            with self._database.session() as session:
                row = PromptPresetRow(name=name, prompt=prompt)
                session.add(row)
                session.flush()
                return _to_preset(row)
        except IntegrityError as exc:
            raise DuplicatePresetError(f"Prompt preset `{name}` already exists.") from exc

    def list_presets(self) -> list[PromptPreset]:
        """Return every prompt preset in id order."""

        with self._database.session() as session:
            rows = session.scalars(select(PromptPresetRow).order_by(PromptPresetRow.id))
            return [_to_preset(row) for row in rows]

    def get_by_name(self, name: str) -> PromptPreset | None:
        """Return a prompt preset by unique name."""

        with self._database.session() as session:
            row = session.scalar(select(PromptPresetRow).where(PromptPresetRow.name == name))
            return _to_preset(row) if row is not None else None

    def update(
        self, preset_id: int, *, name: str | None = None, prompt: str | None = None
    ) -> PromptPreset:
        """Update a prompt preset's name and/or template.

        Raises:
            PresetNotFoundError: If the id does not exist.
            DuplicatePresetError: If `name` belongs to another preset.
        """

        try:
            with self._database.session() as session:
                row = session.get(PromptPresetRow, preset_id)
                if row is None:
                    raise PresetNotFoundError(f"Prompt preset id {preset_id} does not exist.")
                if name is not None:
                    row.name = name
                if prompt is not None:
                    row.prompt = prompt
                session.flush()
                return _to_preset(row)
        except IntegrityError as exc:
            raise DuplicatePresetError(f"Prompt preset `{name}` already exists.") from exc

    def delete(self, preset_id: int) -> bool:
        """Delete a prompt preset and report whether it existed."""

        with self._database.session() as session:
            row = session.get(PromptPresetRow, preset_id)
            if row is None:
                return False
            session.delete(row)
            return True
