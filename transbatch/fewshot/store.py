"""Few-shot example store combining preset examples with the rolling buffer.

Responsibilities:
- Track the active example preset and its fixed per-language examples.
- Append successful translations to the rolling buffer.
- Render tagged example blocks for prompt substitution.
- Manage presets while keeping the active one consistent.
"""

from __future__ import annotations

import threading
from typing import Mapping, Sequence

from ..errors import PresetNotFoundError
from ..models.datatypes import ExamplePair, ExamplePreset, TaggedExample
from ..storage.presets import ExamplePresetRepository
from ..telemetry.logger import EventLogger
from ..text.tagging import tag_texts
from .buffer import DEFAULT_EXAMPLE_MAX_CHARS, RollingExampleBuffer


SOURCE_LANGUAGES = ("Chinese", "English", "Japanese")


def empty_examples() -> dict[str, ExamplePair]:
    """Return empty example pairs for every supported source language."""

    return {language: ExamplePair() for language in SOURCE_LANGUAGES}


class ExampleStore:
    """Session-scoped few-shot examples backed by durable presets."""

    def __init__(
        self,
        repository: ExamplePresetRepository,
        *,
        max_chars: int = DEFAULT_EXAMPLE_MAX_CHARS,
        logger: EventLogger | None = None,
    ) -> None:
        self._repository = repository
        self._buffer = RollingExampleBuffer(max_chars=max_chars)
        self._fixed: dict[str, ExamplePair] = empty_examples()
        self._current_preset_name: str | None = None
        self._logger = logger or EventLogger()
        self._lock = threading.Lock()

    @property
    def current_preset_name(self) -> str | None:
        """Return the active preset name, if any."""

        return self._current_preset_name

    def initialize(self) -> None:
        """Activate the first stored preset, when one exists."""

        presets = self._repository.list_presets()
        if presets:
            self.load_preset(presets[0].name)

    def get_example(self, language: str) -> TaggedExample:
        """Return tagged preset-plus-buffer examples for a source language."""

        with self._lock:
            fixed = self._fixed.get(language, ExamplePair())
            current = self._buffer.get(language)
        return TaggedExample(
            source=tag_texts([*fixed.source_lines, *current.source_lines]),
            result=tag_texts([*fixed.result_lines, *current.result_lines]),
        )

    def append_current_example(
        self, language: str, source_lines: Sequence[str], result_lines: Sequence[str]
    ) -> None:
        """Add successful translations to the rolling buffer for a language."""

        if not source_lines:
            return
        with self._lock:
            self._buffer.append(language, source_lines, result_lines)

    def current_examples(self) -> dict[str, ExamplePair]:
        """Return preset and buffered examples merged per language."""

        with self._lock:
            languages = list(dict.fromkeys([*SOURCE_LANGUAGES, *self._fixed]))
            merged: dict[str, ExamplePair] = {}
            for language in languages:
                fixed = self._fixed.get(language, ExamplePair())
                current = self._buffer.get(language)
                merged[language] = ExamplePair(
                    source_lines=fixed.source_lines + current.source_lines,
                    result_lines=fixed.result_lines + current.result_lines,
                )
            return merged

    def clear_current_examples(self, language: str | None = None) -> None:
        """Forget buffered examples."""

        with self._lock:
            self._buffer.clear(language)

    def list_presets(self) -> list[ExamplePreset]:
        """Return every stored preset."""

        return self._repository.list_presets()

    def get_preset(self, name: str) -> ExamplePreset | None:
        """Return a preset by name."""

        return self._repository.get_by_name(name)

    def create_preset(
        self,
        name: str,
        description: str | None = None,
        examples: Mapping[str, ExamplePair] | None = None,
    ) -> ExamplePreset:
        """Store a new preset, empty for every language unless examples are given."""

        preset = self._repository.create(
            name, examples if examples is not None else empty_examples(), description
        )
        self._logger.info("examples", "preset_created", preset=name)
        return preset

    def load_preset(self, name: str) -> ExamplePreset:
        """Make a stored preset the active source of fixed examples.

        Raises:
            PresetNotFoundError: If no preset has this name.
        """

        preset = self._repository.get_by_name(name)
        if preset is None:
            raise PresetNotFoundError(f"Example preset `{name}` does not exist.")
        with self._lock:
            self._fixed = dict(preset.examples)
            self._current_preset_name = preset.name
        self._logger.info("examples", "preset_loaded", preset=name)
        return preset

    def update_preset(
        self,
        preset_id: int,
        examples: Mapping[str, ExamplePair],
        description: str | None = None,
        name: str | None = None,
    ) -> ExamplePreset:
        """Update a preset; the active preset's fixed examples follow the change."""

        previous = self._repository.get(preset_id)
        if previous is None:
            raise PresetNotFoundError(f"Example preset id {preset_id} does not exist.")
        updated = self._repository.update(
            preset_id, examples=examples, description=description, name=name
        )
        with self._lock:
            if self._current_preset_name == previous.name:
                self._fixed = dict(updated.examples)
                self._current_preset_name = updated.name
        return updated

    def delete_preset(self, preset_id: int) -> bool:
        """Delete a preset; when it is active, switch to another or clear fixed examples."""

        preset = self._repository.get(preset_id)
        if preset is None:
            return False
        if self._current_preset_name == preset.name:
            others = [item for item in self._repository.list_presets() if item.id != preset_id]
            if others:
                self.load_preset(others[0].name)
            else:
                with self._lock:
                    self._fixed = empty_examples()
                    self._current_preset_name = None
        deleted = self._repository.delete(preset_id)
        self._logger.info("examples", "preset_deleted", preset=preset.name)
        return deleted
