"""Provider factory functions.

One provider instance per process, built on first use.
"""

from parley.core.config import Settings, settings
from parley.core.errors import ServiceUnavailableError
from parley.providers.llm.base import LLMProvider
from parley.providers.llm.groq_adapter import GroqAdapter

_llm_provider: LLMProvider | None = None


def get_llm_provider(config: Settings | None = None) -> LLMProvider:
    """Get or create the LLM provider singleton.

    Args:
        config: Settings to build the provider from. Defaults to the
            module-level settings.

    Returns:
        LLMProvider instance.

    Raises:
        ServiceUnavailableError: If GROQ_API_KEY is not configured.
    """
    global _llm_provider

    if _llm_provider is None:
        config = config or settings
        if not config.groq_api_key.get_secret_value():
            raise ServiceUnavailableError("AI service is not configured")
        _llm_provider = GroqAdapter(config)

    return _llm_provider


def reset_providers() -> None:
    """Reset provider singletons.

    Used in tests to ensure isolation between test cases.
    """
    global _llm_provider
    _llm_provider = None
