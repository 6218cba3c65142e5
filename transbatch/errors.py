"""Domain exceptions for translation orchestration and CLI diagnostics."""

from __future__ import annotations

from typing import Sequence


class PipelineStageError(RuntimeError):
    """Raised when a specific command stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


class TranslationAbortedError(RuntimeError):
    """Raised when consecutive model-call failures reach the abort threshold."""

    def __init__(
        self,
        *,
        failure_count: int,
        unresolved_texts: Sequence[str],
        last_error: BaseException | None = None,
    ) -> None:
        """Initialize abort metadata for caller diagnostics."""

        detail = f"Translation aborted after {failure_count} consecutive failed requests"
        if last_error is not None:
            detail = f"{detail}: {last_error}"
        super().__init__(detail)
        self.failure_count = failure_count
        self.unresolved_texts = tuple(unresolved_texts)
        self.last_error = last_error


class PromptRenderError(ValueError):
    """Raised when a prompt template cannot be rendered for a batch."""


class PresetError(RuntimeError):
    """Base error for example and prompt preset operations."""


class PresetNotFoundError(PresetError):
    """Raised when a preset id or name does not exist."""


class DuplicatePresetError(PresetError):
    """Raised when a preset name is already taken."""
