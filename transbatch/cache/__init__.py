"""Two-tier translation cache (memory LRU plus durable SQLite)."""

from .manager import TranslationCache
from .memory import MemoryTranslationCache

__all__ = ["MemoryTranslationCache", "TranslationCache"]
