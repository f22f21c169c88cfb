"""LLM provider adapters and completion services for the prompt optimizer."""

from .base import LLMProvider, LLMRequest, LLMResponse, ProviderNotConfiguredError
from .completion import CompletionService
from .factory import LLMFactory
from .groq import GroqProvider
from .claude import ClaudeProvider
from .gemini import GeminiProvider

__all__ = [
    "LLMProvider",
    "LLMRequest",
    "LLMResponse",
    "ProviderNotConfiguredError",
    "CompletionService",
    "LLMFactory",
    "GroqProvider",
    "ClaudeProvider",
    "GeminiProvider",
]
