"""Structured event logging utilities.

Responsibilities:
- Emit concise, deterministic key/value event lines through `loguru`.
- Keep secrets and raw provider payloads out of log context.
"""

from __future__ import annotations

import sys
from typing import TextIO

from loguru import logger as _loguru_logger


def _sanitize_context_value(value: object) -> str:
    """Convert context values into stable, shell-safe tokens."""

    raw = str(value).strip()
    if not raw:
        return "none"
    return "".join(
        character if character.isalnum() or character in {"-", "_", ".", ":", "/"} else "_"
        for character in raw
    )


def _format_context(context: dict[str, object]) -> str:
    """Serialize context key/value pairs in deterministic key order."""

    if not context:
        return ""
    tokens = [
        f"{key}={_sanitize_context_value(context[key])}"
        for key in sorted(context.keys())
    ]
    return " " + " ".join(tokens)


def configure_logging(sink: TextIO | None = None, level: str = "INFO") -> None:
    """Replace loguru sinks with one plain-message sink at the given level."""

    _loguru_logger.remove()
    _loguru_logger.add(sink or sys.stderr, format="{message}", level=level, colorize=False)


class EventLogger:
    """Emit structured stage/event lines for engine activity."""

    def __init__(self, component: str = "transbatch") -> None:
        """Initialize logger with the component label prefixed to every line."""

        self._component = component

    def _emit(self, level: str, event: str, stage: str, **context: object) -> None:
        """Emit one structured log line."""

        line = (
            f"[{self._component}] level={level} stage={stage} event={event}"
            f"{_format_context(context)}"
        )
        _loguru_logger.log(level, line)

    def debug(self, stage: str, event: str, **context: object) -> None:
        """Emit a debug-level event."""

        self._emit("DEBUG", event, stage, **context)

    def info(self, stage: str, event: str, **context: object) -> None:
        """Emit an info-level event."""

        self._emit("INFO", event, stage, **context)

    def warning(self, stage: str, event: str, **context: object) -> None:
        """Emit a warning-level event."""

        self._emit("WARNING", event, stage, **context)

    def error(self, stage: str, event: str, error_type: str, **context: object) -> None:
        """Emit an error event without sensitive payload details."""

        self._emit("ERROR", event, stage, error_type=error_type, **context)
