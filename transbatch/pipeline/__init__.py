"""Translation pipeline package.

This package contains the batched translation orchestrator and the
text-array service that splits large inputs into concurrent calls.
"""

from .orchestrator import OrchestratorSettings, TranslationOrchestrator
from .service import TextArrayTranslator

__all__ = ["OrchestratorSettings", "TextArrayTranslator", "TranslationOrchestrator"]
