"""Abstract base class and types for LLM providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from parley.storage.records import ChatMode


@dataclass
class LLMMessage:
    """Provider-agnostic chat message.

    Attributes:
        role: "system", "user" or "assistant".
        content: Text content.
    """

    role: str
    content: str


@dataclass
class LLMResponse:
    """Provider-agnostic completion result.

    Attributes:
        content: Assistant text. Empty string when the model returned nothing.
        model: Model that produced the completion.
        input_tokens: Prompt tokens used.
        output_tokens: Completion tokens generated.
        finish_reason: Why generation stopped ("stop", "length", ...).
        latency_ms: Response time in milliseconds.
    """

    content: str
    model: str
    input_tokens: int
    output_tokens: int
    finish_reason: str
    latency_ms: float


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider identifier (e.g. 'groq')."""
        ...

    @abstractmethod
    async def complete(
        self,
        messages: list[LLMMessage],
        mode: ChatMode,
    ) -> LLMResponse:
        """Generate a completion (non-streaming).

        Args:
            messages: Conversation history, oldest first.
            mode: Conversation mode; picks the model.

        Returns:
            LLMResponse with the assistant reply.

        Raises:
            ProviderError: On API failure.
        """
        ...

    @abstractmethod
    def get_model_for_mode(self, mode: ChatMode) -> str:
        """Return the model identifier used for a conversation mode."""
        ...
