"""Input normalization applied before cache lookup and batching.

Responsibilities:
- Escape literal line breaks so one source text always occupies one tagged line.
- Convert full-width ASCII digits, letters, punctuation, and space to half width.
- Derive durable cache keys from source texts.
"""

from __future__ import annotations


_WIDTH_CONVERSION_OFFSET = 0xFEE0
_FULL_WIDTH_TO_HALF_WIDTH = {
    code: code - _WIDTH_CONVERSION_OFFSET for code in range(0xFF01, 0xFF5F)
}
_FULL_WIDTH_TO_HALF_WIDTH[0x3000] = ord(" ")


def escape_line_breaks(text: str) -> str:
    """Replace literal CR/LF characters with their two-character escapes."""

    return text.replace("\r", "\\r").replace("\n", "\\n")


def unescape_line_breaks(text: str) -> str:
    """Reverse `escape_line_breaks` on translated output."""

    return text.replace("\\r", "\r").replace("\\n", "\n")


def full_width_to_half_width(text: str) -> str:
    """Convert full-width ASCII variants and the ideographic space to half width."""

    return text.translate(_FULL_WIDTH_TO_HALF_WIDTH)


class TextNormalizer:
    """Normalize source texts into the canonical form sent to the model."""

    def normalize(self, text: str) -> str:
        """Return the escaped, half-width form of one source text."""

        return full_width_to_half_width(escape_line_breaks(text))

    def denormalize(self, text: str) -> str:
        """Restore literal line breaks in translated output."""

        return unescape_line_breaks(text)


def normalize_cache_key(text: str) -> str:
    """Strip literal and escaped line breaks, then trim, to form a cache key."""

    return (
        text.replace("\r", "")
        .replace("\n", "")
        .replace("\\n", "")
        .replace("\\r", "")
        .strip()
    )
