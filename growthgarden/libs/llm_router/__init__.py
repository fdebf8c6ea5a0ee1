"""Model-agnostic LLM routing utilities."""

from .base import BaseProvider
from .openai_provider import OpenAIProvider
from .router import LLMRouter, LLMUnavailableError
from .types import LLMResponse

__all__ = [
    "BaseProvider",
    "LLMResponse",
    "LLMRouter",
    "LLMUnavailableError",
    "OpenAIProvider",
]
