"""Pure transformation adapters for different LLM providers."""

from .openai import OpenAIRequestAdapter, UnparseableResponseError
from .anthropic import AnthropicRequestAdapter, ephemeral
from .gemini import GeminiRequestAdapter

__all__ = [
    "OpenAIRequestAdapter",
    "AnthropicRequestAdapter",
    "GeminiRequestAdapter",
    "UnparseableResponseError",
    "ephemeral",
]
