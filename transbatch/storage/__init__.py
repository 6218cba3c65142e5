"""Durable SQLite storage for translations and presets."""

from .database import Database
from .presets import ExamplePresetRepository
from .prompt_presets import PromptPresetRepository
from .translations import SqliteTranslationStore

__all__ = [
    "Database",
    "ExamplePresetRepository",
    "PromptPresetRepository",
    "SqliteTranslationStore",
]
