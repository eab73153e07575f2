"""Groq LLM adapter.

Groq exposes an OpenAI-compatible API, so the adapter drives the openai SDK
with Groq's base URL.
"""

import contextlib
import time

import openai
import structlog
from openai import AsyncOpenAI

from parley.core.config import Settings
from parley.providers.errors import (
    AuthenticationError,
    ContextLengthError,
    ModelNotFoundError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from parley.providers.llm.base import LLMMessage, LLMProvider, LLMResponse
from parley.storage.records import ChatMode

logger = structlog.get_logger()


def _classify_openai_error(error: Exception) -> ProviderError:
    """Map OpenAI SDK exceptions to the internal error taxonomy.

    Returns a ProviderError subclass instance (does not raise).
    """
    if isinstance(error, openai.RateLimitError):
        retry_after = None
        if getattr(error, "response", None) is not None:
            retry_header = error.response.headers.get("retry-after")
            if retry_header is not None:
                with contextlib.suppress(ValueError):
                    retry_after = float(retry_header)
        return RateLimitError(str(error), retry_after_seconds=retry_after)

    if isinstance(error, openai.AuthenticationError):
        return AuthenticationError(str(error))

    if isinstance(error, openai.NotFoundError):
        return ModelNotFoundError(str(error))

    if isinstance(error, openai.BadRequestError):
        if "context_length" in str(error).lower():
            return ContextLengthError(str(error))
        return ProviderError(str(error))

    if isinstance(error, (openai.APIConnectionError, openai.InternalServerError)):
        return TransientError(str(error))

    return ProviderError(str(error))


class GroqAdapter(LLMProvider):
    """Groq adapter using the OpenAI SDK."""

    def __init__(self, config: Settings) -> None:
        """Initialize Groq adapter.

        Args:
            config: Application settings with the Groq API key and models.
        """
        self.config = config
        self.client = AsyncOpenAI(
            api_key=config.groq_api_key.get_secret_value(),
            base_url=config.groq_base_url,
        )
        self.model_routing = {
            ChatMode.CHAT: config.groq_chat_model,
            ChatMode.CODE: config.groq_code_model,
        }

    @property
    def provider_name(self) -> str:
        return "groq"

    def get_model_for_mode(self, mode: ChatMode) -> str:
        # Unknown modes fall back to the chat model
        return self.model_routing.get(mode, self.config.groq_chat_model)

    async def complete(
        self,
        messages: list[LLMMessage],
        mode: ChatMode,
    ) -> LLMResponse:
        """Generate a completion with the model routed for ``mode``."""
        model = self.get_model_for_mode(mode)

        logger.info(
            "llm_request_start",
            provider=self.provider_name,
            model=model,
            mode=mode.value,
            message_count=len(messages),
        )

        start_time = time.monotonic()

        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[{"role": m.role, "content": m.content} for m in messages],
                temperature=self.config.llm_temperature,
                max_tokens=self.config.llm_max_tokens,
            )
        except openai.OpenAIError as e:
            logger.error(
                "llm_request_failed",
                provider=self.provider_name,
                model=model,
                mode=mode.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise _classify_openai_error(e) from e

        latency_ms = (time.monotonic() - start_time) * 1000
        choice = response.choices[0] if response.choices else None
        content = (choice.message.content if choice else None) or ""
        usage = response.usage

        logger.info(
            "llm_request_complete",
            provider=self.provider_name,
            model=model,
            mode=mode.value,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            latency_ms=latency_ms,
        )

        return LLMResponse(
            content=content,
            model=model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            finish_reason=(choice.finish_reason if choice else None) or "stop",
            latency_ms=latency_ms,
        )
