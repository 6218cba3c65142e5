"""Model response decoding for the numbered-tag protocol.

Responsibilities:
- Extract usable text, dropping a trailing partial tag on truncated output.
- Map `<|N|>content` matches back to batch sources and their input positions.
"""

from __future__ import annotations

import re
from typing import Mapping, Sequence

from ..models.datatypes import TranslatedEntry
from .model_client import FINISH_REASON_MAX_TOKENS, ModelResponse


_RESPONSE_TAG_PATTERN = re.compile(r"<\|(\d+)\|>(.*?)(?=<\|\d+\|>|$)", re.MULTILINE)


class ResponseCodec:
    """Decode tagged model output into translated entries."""

    def extract_text(self, response: ModelResponse) -> str:
        """Return response text, cut at the last tag when output hit the token limit."""

        text = response.text()
        if response.finish_reason == FINISH_REASON_MAX_TOKENS:
            last_tag_index = text.rfind("<|")
            if last_tag_index > 0:
                return text[:last_tag_index]
        return text

    def parse(
        self,
        text: str,
        batch: Sequence[str],
        positions: Mapping[str, Sequence[int]],
    ) -> list[TranslatedEntry]:
        """Parse tagged lines into entries for the sources of `batch`.

        Tag numbers are resolved 1-based against the batch's non-blank sources,
        matching how the batch was tagged. Out-of-range numbers and blank
        content are ignored; a repeated number keeps its last content.
        """

        tagged_sources = [source for source in batch if source.strip()]
        entries: dict[str, TranslatedEntry] = {}
        for match in _RESPONSE_TAG_PATTERN.finditer(text):
            number = int(match.group(1))
            if number < 1 or number > len(tagged_sources):
                continue
            translated = match.group(2).strip()
            if not translated:
                continue
            source = tagged_sources[number - 1]
            entries[source] = TranslatedEntry(
                source=source,
                translated_text=translated,
                indices=tuple(positions.get(source, ())),
            )
        return list(entries.values())

    def decode(
        self,
        response: ModelResponse,
        batch: Sequence[str],
        positions: Mapping[str, Sequence[int]],
    ) -> list[TranslatedEntry]:
        """Extract and parse a response for one batch."""

        return self.parse(self.extract_text(response), batch, positions)
