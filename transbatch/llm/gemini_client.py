"""Gemini `generateContent` model client.

Responsibilities:
- Convert chat blocks into Gemini `contents` and `systemInstruction` payloads.
- Normalize the first candidate into a `GenerationResponse`.
"""

from __future__ import annotations

import asyncio
from typing import Any, Sequence

from ..models.datatypes import ChatTurn
from .http_client import HttpModelClientBase, ProviderError
from .model_client import GenerationResponse


DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiModelClient(HttpModelClientBase):
    """Minimal requests-based Gemini REST client."""

    provider_label = "Gemini"

    async def generate_content(
        self,
        *,
        contents: Sequence[ChatTurn],
        system_instruction: str | None,
    ) -> GenerationResponse:
        """Send one generateContent request without blocking the event loop."""

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
        """Send one generateContent request and normalize the first candidate."""

        self._require_api_key()
        payload: dict[str, Any] = {
            "contents": [
                {"role": turn.role, "parts": [{"text": part} for part in turn.parts]}
                for turn in contents
            ],
            "generationConfig": {
                "temperature": self.temperature,
                "topP": self.top_p,
                "maxOutputTokens": self.max_output_tokens,
            },
        }
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        response_payload = self._post_json(
            endpoint_path=f"/models/{self.model}:generateContent",
            payload=payload,
            headers={"x-goog-api-key": self.api_key},
        )
        return self._to_generation_response(response_payload)

    @staticmethod
    def _to_generation_response(payload: dict[str, Any]) -> GenerationResponse:
        """Extract first-candidate text, finish reason, and usage."""

        candidates = payload.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            feedback = payload.get("promptFeedback")
            block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            detail = "Gemini response has no candidates"
            if isinstance(block_reason, str):
                detail = f"{detail} (prompt blocked: {block_reason})"
            raise ProviderError(f"{detail}.", failure_kind="empty_response")

        first_candidate = candidates[0]
        if not isinstance(first_candidate, dict):
            raise ProviderError(
                "Gemini response `candidates[0]` is malformed.",
                failure_kind="malformed_response",
            )
        content = first_candidate.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        text = ""
        if isinstance(parts, list):
            text = "".join(
                part["text"]
                for part in parts
                if isinstance(part, dict) and isinstance(part.get("text"), str)
            )
        finish_reason = first_candidate.get("finishReason")
        if not text.strip():
            raise ProviderError(
                f"Gemini response candidate has no text (finish reason: {finish_reason}).",
                failure_kind="empty_response",
            )

        usage = payload.get("usageMetadata")
        if not isinstance(usage, dict):
            usage = {}
        return GenerationResponse(
            output_text=text,
            finish_reason=finish_reason if isinstance(finish_reason, str) else None,
            candidates=tuple(candidate for candidate in candidates if isinstance(candidate, dict)),
            usage_metadata={
                "prompt_tokens": usage.get("promptTokenCount", 0),
                "output_tokens": usage.get("candidatesTokenCount", 0),
            },
        )
