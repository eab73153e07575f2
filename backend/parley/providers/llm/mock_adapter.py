"""Mock LLM provider for testing."""

from typing import Any

from parley.providers.llm.base import LLMMessage, LLMProvider, LLMResponse
from parley.storage.records import ChatMode


class MockLLMProvider(LLMProvider):
    """Deterministic provider for tests.

    Attributes:
        responses: Pre-configured replies keyed by ChatMode.
        calls: Record of every complete() call for assertions.
        last_mode: The most recent mode used.
    """

    @property
    def provider_name(self) -> str:
        return "mock"

    def __init__(self, responses: dict[ChatMode, str] | None = None) -> None:
        self.responses: dict[ChatMode, str] = dict(responses) if responses else {}
        self.calls: list[dict[str, Any]] = []
        self.last_mode: ChatMode | None = None

    def set_response(self, mode: ChatMode, content: str) -> None:
        self.responses[mode] = content

    def get_model_for_mode(self, mode: ChatMode) -> str:
        return f"mock-{mode.value}-model"

    async def complete(
        self,
        messages: list[LLMMessage],
        mode: ChatMode,
    ) -> LLMResponse:
        self.calls.append({"method": "complete", "messages": messages, "mode": mode})
        self.last_mode = mode

        return LLMResponse(
            content=self.responses.get(mode, f"Mock response for {mode.value}"),
            model=self.get_model_for_mode(mode),
            input_tokens=100,
            output_tokens=50,
            finish_reason="stop",
            latency_ms=10,
        )
