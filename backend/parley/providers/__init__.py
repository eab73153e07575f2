"""LLM provider layer.

Exports:
    Error classes for provider error handling
    Factory functions for provider instances
"""

from parley.providers.errors import (
    AuthenticationError,
    ContextLengthError,
    ModelNotFoundError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from parley.providers.factory import get_llm_provider, reset_providers

__all__ = [
    # Errors
    "ProviderError",
    "RateLimitError",
    "AuthenticationError",
    "ModelNotFoundError",
    "ContextLengthError",
    "TransientError",
    # Factory
    "get_llm_provider",
    "reset_providers",
]
