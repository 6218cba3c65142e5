"""Provider-neutral model client and response interfaces.

Responsibilities:
- Define the request surface the orchestrator calls for one batch.
- Define the response surface the response codec reads.
- Provide a plain dataclass response that HTTP adapters populate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, Sequence

from ..models.datatypes import ChatTurn


FINISH_REASON_MAX_TOKENS = "MAX_TOKENS"
FINISH_REASON_STOP = "STOP"


class ModelResponse(Protocol):
    """Response exposed by every model client."""

    finish_reason: str | None
    candidates: Sequence[Mapping[str, Any]]
    usage_metadata: Mapping[str, Any]

    def text(self) -> str:
        """Return the concatenated text of the first candidate."""


class ModelClient(Protocol):
    """Client able to generate one completion for a structured prompt."""

    async def generate_content(
        self,
        *,
        contents: Sequence[ChatTurn],
        system_instruction: str | None,
    ) -> ModelResponse:
        """Send one generation request and return the provider response."""


# Builds a client from `(model_id, api_key, max_output_tokens)`.
ModelClientBuilder = Callable[[str, str, int], ModelClient]


@dataclass(frozen=True, slots=True)
class GenerationResponse:
    """Concrete response populated by provider adapters.

    Attributes:
        output_text: Text of the first candidate.
        finish_reason: Normalized finish reason (`STOP`, `MAX_TOKENS`, ...).
        candidates: Raw provider candidate payloads.
        usage_metadata: Token usage with `prompt_tokens` and `output_tokens` keys.
    """

    output_text: str
    finish_reason: str | None = FINISH_REASON_STOP
    candidates: tuple[Mapping[str, Any], ...] = field(default_factory=tuple)
    usage_metadata: Mapping[str, Any] = field(default_factory=dict)

    def text(self) -> str:
        """Return the first candidate text."""

        return self.output_text
