"""Rolling in-session buffer of recent successful translations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from ..models.datatypes import ExamplePair


DEFAULT_EXAMPLE_MAX_CHARS = 300


@dataclass(slots=True)
class RollingExampleBuffer:
    """Per-language example lines bounded by total source characters.

    After each append only the newest lines whose summed source length fits
    `max_chars` are kept; a single line longer than the budget empties the buffer.
    """

    max_chars: int = DEFAULT_EXAMPLE_MAX_CHARS
    _pairs: dict[str, ExamplePair] = field(default_factory=dict)

    def append(
        self, language: str, source_lines: Sequence[str], result_lines: Sequence[str]
    ) -> ExamplePair:
        """Append aligned lines for a language and trim from the oldest end."""

        current = self._pairs.get(language, ExamplePair())
        all_sources = [*current.source_lines, *source_lines]
        all_results = [*current.result_lines, *result_lines]

        start = 0
        total_chars = 0
        for index in range(len(all_sources) - 1, -1, -1):
            total_chars += len(all_sources[index])
            if total_chars > self.max_chars:
                start = index + 1
                break

        trimmed = ExamplePair(
            source_lines=tuple(all_sources[start:]),
            result_lines=tuple(all_results[start:]),
        )
        self._pairs[language] = trimmed
        return trimmed

    def get(self, language: str) -> ExamplePair:
        """Return the buffered lines for a language."""

        return self._pairs.get(language, ExamplePair())

    def clear(self, language: str | None = None) -> None:
        """Forget one language, or every language when `language` is `None`."""

        if language is None:
            self._pairs.clear()
        else:
            self._pairs.pop(language, None)
