"""LLM provider interface and adapters."""

from parley.providers.llm.base import LLMMessage, LLMProvider, LLMResponse
from parley.providers.llm.groq_adapter import GroqAdapter
from parley.providers.llm.mock_adapter import MockLLMProvider

__all__ = [
    # Base types
    "LLMMessage",
    "LLMProvider",
    "LLMResponse",
    # Adapters
    "GroqAdapter",
    "MockLLMProvider",
]
