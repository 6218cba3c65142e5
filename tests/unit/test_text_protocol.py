"""Unit tests for input normalization, cache keys, and the numbered-tag protocol."""

from __future__ import annotations

from transbatch.text.normalizer import (
    TextNormalizer,
    full_width_to_half_width,
    normalize_cache_key,
)
from transbatch.text.tagging import tag_texts, trim_and_filter


def test_normalizer_escapes_line_breaks_and_restores_them() -> None:
    """Literal CR/LF should become two-character escapes and come back on output."""

    normalizer = TextNormalizer()

    normalized = normalizer.normalize("line one\r\nline two")

    assert normalized == "line one\\r\\nline two"
    assert "\n" not in normalized
    assert normalizer.denormalize(normalized) == "line one\r\nline two"


def test_full_width_ascii_and_ideographic_space_become_half_width() -> None:
    """Full-width letters, digits, punctuation, and U+3000 should be converted."""

    assert full_width_to_half_width("Ｈｅｌｌｏ，　ｗｏｒｌｄ！１２３") == "Hello, world!123"
    assert full_width_to_half_width("日本語") == "日本語"


def test_cache_key_strips_literal_and_escaped_line_breaks() -> None:
    """Cache keys should ignore line breaks in either form and outer whitespace."""

    assert normalize_cache_key("  Hello\nworld  ") == "Helloworld"
    assert normalize_cache_key("Hello\\nworld\\r") == "Helloworld"
    assert normalize_cache_key(" \n\\n ") == ""


def test_tag_texts_numbers_trimmed_non_blank_lines() -> None:
    """Tags should be 1-based over trimmed, non-blank texts."""

    assert trim_and_filter([" a ", "", "  ", "b"]) == ["a", "b"]
    assert tag_texts([" a ", "", "b"]) == "<|1|>a\n<|2|>b"
    assert tag_texts([]) == ""
