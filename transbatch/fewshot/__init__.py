"""Few-shot example management."""

from .buffer import RollingExampleBuffer
from .store import ExampleStore

__all__ = ["ExampleStore", "RollingExampleBuffer"]
