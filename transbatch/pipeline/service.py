"""Text-array translation service.

Responsibilities:
- Split large text arrays into request chunks sized to the output budget.
- Run chunk translations concurrently and reassemble outputs in input order.
- Translate addressable `TextItem` inputs and attach origin file metadata.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Sequence

from ..llm.tokens import TokenEstimator, plan_request_chunks
from ..models.datatypes import FileInfo, TextItem, TranslatedTextItem, TranslationRequest
from ..telemetry.logger import EventLogger
from .orchestrator import ProgressCallback, TranslationOrchestrator


class TextArrayTranslator:
    """Chunk a text array into independent translate calls."""

    def __init__(
        self,
        orchestrator: TranslationOrchestrator,
        estimator: TokenEstimator | None = None,
        logger: EventLogger | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._estimator = estimator
        self._logger = logger or EventLogger()

    async def translate_texts(
        self,
        model_id: str,
        request: TranslationRequest,
        progress: ProgressCallback | None = None,
    ) -> list[str]:
        """Translate every text of `request`, one orchestrator call per chunk."""

        chunks = plan_request_chunks(
            request.source_texts, request.max_output_token_count, self._estimator
        )
        if not chunks:
            return []
        self._logger.info(
            "service",
            "chunks_planned",
            model=model_id,
            texts=len(request.source_texts),
            chunks=len(chunks),
        )
        results = await asyncio.gather(
            *(
                self._orchestrator.translate(
                    model_id, replace(request, source_texts=tuple(chunk)), progress
                )
                for chunk in chunks
            )
        )
        return [text for chunk_result in results for text in chunk_result]

    async def translate_items(
        self,
        model_id: str,
        items: Sequence[TextItem],
        request: TranslationRequest,
        source_path: Path | None = None,
    ) -> list[TranslatedTextItem]:
        """Translate text items, keeping each item's context label.

        `source_path`, when given, overrides `request.file_info`.
        """

        file_info = FileInfo.from_path(source_path) if source_path is not None else request.file_info
        translations = await self.translate_texts(
            model_id,
            replace(
                request,
                source_texts=tuple(item.text for item in items),
                file_info=file_info,
            ),
        )
        return [
            TranslatedTextItem(text=item.text, translation=translation, context=item.context)
            for item, translation in zip(items, translations)
        ]
