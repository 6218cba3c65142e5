"""LLM-facing abstractions for batched translation.

This package defines prompt rendering, provider clients, response decoding,
token budgeting, and per-model rate limiting.
"""

from .gemini_client import GeminiModelClient
from .http_client import ProviderError
from .model_client import GenerationResponse, ModelClient, ModelClientBuilder
from .openai_client import OpenAIChatModelClient
from .prompts import PromptCodec
from .rate_limiter import RateLimiterRegistry, TokenBucket
from .responses import ResponseCodec
from .tokens import CharacterRatioEstimator, TokenBatcher, plan_request_chunks

__all__ = [
    "CharacterRatioEstimator",
    "GeminiModelClient",
    "GenerationResponse",
    "ModelClient",
    "ModelClientBuilder",
    "OpenAIChatModelClient",
    "PromptCodec",
    "ProviderError",
    "RateLimiterRegistry",
    "ResponseCodec",
    "TokenBatcher",
    "TokenBucket",
    "plan_request_chunks",
]
