"""Top-level package for transbatch.

This package translates large batches of short text fragments through
rate-limited generative models. The main entry point is `TranslationEngine`,
which wires the cache tier, example store, rate limiters, and orchestrator.
"""

from .engine import TranslationEngine

__all__ = ["TranslationEngine", "__version__"]

__version__ = "0.1.0"
