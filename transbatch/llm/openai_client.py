"""OpenAI-compatible chat-completions model client.

Responsibilities:
- Convert chat blocks into chat-completions messages.
- Normalize the first choice into a `GenerationResponse`.
"""

from __future__ import annotations

import asyncio
from typing import Any, Sequence

from ..models.datatypes import ChatTurn
from .http_client import HttpModelClientBase, ProviderError
from .model_client import FINISH_REASON_MAX_TOKENS, GenerationResponse


DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"

_FINISH_REASONS = {
    "length": FINISH_REASON_MAX_TOKENS,
    "stop": "STOP",
    "content_filter": "SAFETY",
}


class OpenAIChatModelClient(HttpModelClientBase):
    """Minimal requests-based chat-completions client."""

    provider_label = "OpenAI"

    async def generate_content(
        self,
        *,
        contents: Sequence[ChatTurn],
        system_instruction: str | None,
    ) -> GenerationResponse:
        """Send one chat-completions request without blocking the event loop."""

        return await asyncio.to_thread(
            self.generate_content_sync,
            contents=contents,
            system_instruction=system_instruction,
        )

    def generate_content_sync(
        self,
        *,
        contents: Sequence[ChatTurn],
        system_instruction: str | None,
    ) -> GenerationResponse:
        """Send one chat-completions request and normalize the first choice."""

        self._require_api_key()
        payload = {
            "model": self.model,
            "messages": self._build_messages(contents, system_instruction),
            "temperature": self.temperature,
            "top_p": self.top_p,
            "max_completion_tokens": self.max_output_tokens,
        }
        response_payload = self._post_json(
            endpoint_path="/chat/completions",
            payload=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        return self._to_generation_response(response_payload)

    @staticmethod
    def _build_messages(
        contents: Sequence[ChatTurn], system_instruction: str | None
    ) -> list[dict[str, str]]:
        """Map chat turns onto chat-completions roles."""

        messages: list[dict[str, str]] = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        for turn in contents:
            role = "assistant" if turn.role == "model" else "user"
            messages.append({"role": role, "content": "\n".join(turn.parts)})
        return messages

    @classmethod
    def _to_generation_response(cls, payload: dict[str, Any]) -> GenerationResponse:
        """Extract first-choice text, finish reason, and usage."""

        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            raise ProviderError(
                "OpenAI response missing non-empty `choices` list.",
                failure_kind="empty_response",
            )
        first_choice = choices[0]
        if not isinstance(first_choice, dict):
            raise ProviderError(
                "OpenAI response `choices[0]` is malformed.",
                failure_kind="malformed_response",
            )
        message = first_choice.get("message")
        if not isinstance(message, dict):
            raise ProviderError(
                "OpenAI response missing `choices[0].message` object.",
                failure_kind="malformed_response",
            )

        text = cls._message_content_to_text(message.get("content"))
        if not text.strip():
            raise ProviderError(
                "OpenAI response message content is empty.",
                failure_kind="empty_response",
            )

        raw_reason = first_choice.get("finish_reason")
        finish_reason = (
            _FINISH_REASONS.get(raw_reason, raw_reason) if isinstance(raw_reason, str) else None
        )
        usage = payload.get("usage")
        if not isinstance(usage, dict):
            usage = {}
        return GenerationResponse(
            output_text=text,
            finish_reason=finish_reason,
            candidates=tuple(choice for choice in choices if isinstance(choice, dict)),
            usage_metadata={
                "prompt_tokens": usage.get("prompt_tokens", 0),
                "output_tokens": usage.get("completion_tokens", 0),
            },
        )

    @staticmethod
    def _message_content_to_text(content: Any) -> str:
        """Convert message content variants into a plain text string."""

        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts: list[str] = []
            for item in content:
                if not isinstance(item, dict):
                    continue
                if item.get("type") == "text" and isinstance(item.get("text"), str):
                    parts.append(item["text"])
            return "".join(parts)
        return ""
