"""Numbered-tag wire protocol shared by prompts, examples, and responses.

A batch is sent as one tagged line per text, `<|1|>first` then `<|2|>second`,
numbered 1-based over the trimmed non-blank lines.
"""

from __future__ import annotations

from typing import Iterable


def trim_and_filter(texts: Iterable[str]) -> list[str]:
    """Trim each text and drop those left blank."""

    return [stripped for stripped in (text.strip() for text in texts) if stripped]


def tag_texts(texts: Iterable[str]) -> str:
    """Render texts as newline-joined numbered tag lines."""

    return "\n".join(
        f"<|{index}|>{text}" for index, text in enumerate(trim_and_filter(texts), start=1)
    )

