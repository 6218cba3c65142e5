"""Text normalization and tagging protocol helpers."""

from .normalizer import TextNormalizer, normalize_cache_key
from .tagging import tag_texts, trim_and_filter

__all__ = [
    "TextNormalizer",
    "normalize_cache_key",
    "tag_texts",
    "trim_and_filter",
]
