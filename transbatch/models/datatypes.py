"""Core datatypes shared across transbatch modules.

Responsibilities:
- Represent immutable records exchanged between cache, batching, and orchestration.
- Provide explicit typing for persisted rows surfaced to callers.

Key types:
- `FileInfo`, `TranslationRequest`, `TranslatedEntry`, `BatchOutcome`,
  `TaggedExample`, `ExamplePair`, `ExamplePreset`, `PromptPreset`,
  `TranslationRecord`, `TranslationHistoryEntry`, `TranslationSearch`,
  `TranslationPage`, `TranslationExport`, `ChatTurn`, `ChatBlock`,
  `TextItem`, and `TranslatedTextItem`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePath
from typing import Literal, Mapping


SearchType = Literal["source", "target", "file_name", "file_path", "date"]
ChatRole = Literal["user", "model"]


@dataclass(frozen=True, slots=True)
class FileInfo:
    """Origin file a batch of texts was read from.

    Attributes:
        file_name: Base name of the source file.
        file_path: Full path of the source file; unique in durable storage.
    """

    file_name: str
    file_path: str

    @classmethod
    def from_path(cls, path: str | PurePath) -> FileInfo:
        """Build file info whose name is derived from the given path."""

        path_text = str(path)
        return cls(file_name=PurePath(path_text).name, file_path=path_text)


@dataclass(frozen=True, slots=True)
class TranslationRequest:
    """One translate call as submitted by a caller.

    Attributes:
        source_texts: Ordered source fragments; duplicates and blanks allowed.
        source_language: Human-readable source language name.
        max_output_token_count: Model output-token ceiling for one request.
        requests_per_minute: Rate limit applied to the model bucket on first use.
        api_key: One or more space-separated API keys, cycled round-robin.
        prompt_preset_content: Optional prompt template overriding the default.
        use_thinking: Whether the model runs in extended-reasoning mode.
        file_info: Optional origin file recorded alongside cache writes.
    """

    source_texts: tuple[str, ...]
    source_language: str
    max_output_token_count: int
    requests_per_minute: int
    api_key: str
    prompt_preset_content: str | None = None
    use_thinking: bool = False
    file_info: FileInfo | None = None


@dataclass(frozen=True, slots=True)
class TranslatedEntry:
    """A parsed translation mapped back to every original position.

    Attributes:
        source: Normalized source key that was translated.
        translated_text: Trimmed model output for this source.
        indices: All positions of `source` in the caller's input.
    """

    source: str
    translated_text: str
    indices: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class BatchOutcome:
    """Result of one model request for one batch.

    A failed outcome means the whole batch re-enters remaining work; a
    successful outcome may still omit items, which re-enter individually.

    Attributes:
        batch: Source keys sent in this request.
        entries: Entries parsed from the response.
        error: Failure raised by the request, when it failed.
        throttled: Whether the failure was a rate-limit/quota rejection.
    """

    batch: tuple[str, ...]
    entries: tuple[TranslatedEntry, ...] = ()
    error: BaseException | None = None
    throttled: bool = False

    @property
    def failed(self) -> bool:
        """Return whether the request failed as a whole."""

        return self.error is not None

    def omitted(self) -> tuple[str, ...]:
        """Return batch keys with no parsed entry."""

        translated = {entry.source for entry in self.entries}
        return tuple(source for source in self.batch if source not in translated)


@dataclass(frozen=True, slots=True)
class TaggedExample:
    """Few-shot example blocks rendered in tagging protocol format.

    Attributes:
        source: Tagged source lines, or an empty string when no example exists.
        result: Tagged result lines aligned with `source`.
    """

    source: str = ""
    result: str = ""


@dataclass(frozen=True, slots=True)
class ExamplePair:
    """Aligned example lines for one language.

    Attributes:
        source_lines: Source-language lines.
        result_lines: Translations of `source_lines`, same order.
    """

    source_lines: tuple[str, ...] = ()
    result_lines: tuple[str, ...] = ()

    def as_payload(self) -> dict[str, list[str]]:
        """Return the JSON-serializable representation used by storage."""

        return {"sourceLines": list(self.source_lines), "resultLines": list(self.result_lines)}

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> ExamplePair:
        """Build an example pair from its stored JSON representation."""

        source = payload.get("sourceLines") or []
        result = payload.get("resultLines") or []
        return cls(
            source_lines=tuple(str(line) for line in source),  # type: ignore[union-attr]
            result_lines=tuple(str(line) for line in result),  # type: ignore[union-attr]
        )


@dataclass(frozen=True, slots=True)
class ExamplePreset:
    """Named collection of per-language example pairs.

    Attributes:
        id: Durable preset identifier.
        name: Unique preset name.
        description: Optional free-text description.
        examples: Example pairs keyed by language name.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
    """

    id: int
    name: str
    description: str | None
    examples: Mapping[str, ExamplePair]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class PromptPreset:
    """Named prompt template.

    Attributes:
        id: Durable preset identifier.
        name: Unique preset name.
        prompt: Template text with role markers and placeholders.
    """

    id: int
    name: str
    prompt: str


@dataclass(frozen=True, slots=True)
class TranslationRecord:
    """Persisted translation for one normalized source key.

    Attributes:
        id: Durable record identifier.
        source: Normalized source key.
        target: Translated text; empty for failed records.
        success: Whether the last write was a successful translation.
        model: Model identifier that produced the last write.
        file_info: Origin file of the last write, when known.
        created_at: First write timestamp.
        last_accessed_at: Last write timestamp.
    """

    id: int
    source: str
    target: str
    success: bool
    model: str
    file_info: FileInfo | None
    created_at: datetime
    last_accessed_at: datetime


@dataclass(frozen=True, slots=True)
class TranslationHistoryEntry:
    """Append-only audit entry for one record write.

    Attributes:
        id: Durable entry identifier.
        translation_id: Owning record identifier.
        source: Source key at write time.
        target: Target text at write time.
        success: Write success flag.
        model: Model identifier used for the write.
        error: Optional error description.
        created_at: Write timestamp.
    """

    id: int
    translation_id: int
    source: str
    target: str
    success: bool
    model: str
    error: str | None
    created_at: datetime


@dataclass(frozen=True, slots=True)
class TranslationSearch:
    """Filter applied to durable translation searches.

    Attributes:
        search_type: Column the filter applies to.
        search_value: Prefix matched against text columns.
        start_date: Inclusive `YYYY/MM/DD` lower bound for date searches.
        end_date: Inclusive `YYYY/MM/DD` upper bound for date searches.
    """

    search_type: SearchType = "source"
    search_value: str = ""
    start_date: str | None = None
    end_date: str | None = None


@dataclass(frozen=True, slots=True)
class TranslationPage:
    """One page of search results.

    Attributes:
        items: Records on this page, newest access first.
        total: Total matching record count.
        page: 1-based page number.
        per_page: Page size.
    """

    items: tuple[TranslationRecord, ...]
    total: int
    page: int
    per_page: int

    @property
    def total_pages(self) -> int:
        """Return the number of pages for the current page size."""

        if self.per_page <= 0:
            return 0
        return (self.total + self.per_page - 1) // self.per_page


@dataclass(frozen=True, slots=True)
class TranslationExport:
    """Portable record representation for export/import.

    Attributes:
        id: Durable record identifier.
        source: Normalized source key.
        target: Translated text.
    """

    id: int
    source: str
    target: str


@dataclass(frozen=True, slots=True)
class ChatTurn:
    """One conversational turn parsed from a prompt template.

    Attributes:
        role: `user` or `model`.
        parts: Text parts in template order; merged turns append parts.
    """

    role: ChatRole
    parts: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ChatBlock:
    """Structured prompt ready for a model client.

    Attributes:
        system_instruction: Text of the last system block, if any.
        contents: Ordered turns with consecutive same-role turns merged.
    """

    system_instruction: str | None
    contents: tuple[ChatTurn, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class TextItem:
    """Addressable input text for the text-array service.

    Attributes:
        text: Source text.
        context: Optional caller-defined label carried through unchanged.
    """

    text: str
    context: str | None = None


@dataclass(frozen=True, slots=True)
class TranslatedTextItem:
    """Text-array service output paired with its input.

    Attributes:
        text: Original source text.
        translation: Translated text, or the original when unresolved.
        context: Caller label copied from the input item.
    """

    text: str
    translation: str
    context: str | None = None
