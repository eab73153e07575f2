"""Chat API request/response schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from parley.storage.records import ChatMode, ChatSession, Message, MessageRole

# =============================================================================
# Completions
# =============================================================================


class CompletionMessage(BaseModel):
    """One turn of the conversation sent for completion."""

    role: Literal["system", "user", "assistant"]
    content: str = Field(max_length=100_000)


class CompletionRequest(BaseModel):
    """Request body for POST /chat/completions.

    Attributes:
        messages: Conversation history, oldest first.
        mode: Picks the completion model. Unrecognized modes use the chat
            model.
    """

    model_config = ConfigDict(extra="forbid")

    messages: list[CompletionMessage] = Field(min_length=1, max_length=200)
    mode: ChatMode = ChatMode.CHAT

    @field_validator("mode", mode="before")
    @classmethod
    def default_unknown_mode(cls, v: object) -> object:
        """Fall back to chat for modes the router doesn't know."""
        if not isinstance(v, str) or v not in {m.value for m in ChatMode}:
            return ChatMode.CHAT
        return v


class CompletionResponse(BaseModel):
    content: str
    model: str


# =============================================================================
# Sessions and messages
# =============================================================================


class CreateChatSessionRequest(BaseModel):
    """Request body for POST /chat/sessions.

    Anonymous callers must pass ``anonymous_session_id``; it is ignored for
    signed-in callers, whose sessions are owned by their account.
    """

    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=200)
    mode: ChatMode = ChatMode.CHAT
    anonymous_session_id: str | None = Field(default=None, max_length=128)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v: str) -> str:
        """Strip whitespace from title."""
        if isinstance(v, str):
            return v.strip()
        return v


class CreateMessageRequest(BaseModel):
    """Request body for POST /chat/messages."""

    model_config = ConfigDict(extra="forbid")

    session_id: str = Field(min_length=1, max_length=64)
    role: MessageRole
    content: str = Field(min_length=1, max_length=100_000)
    anonymous_session_id: str | None = Field(default=None, max_length=128)


class ChatSessionResponse(BaseModel):
    id: str
    user_id: str | None
    anonymous_session_id: str | None
    title: str
    mode: ChatMode
    created_at: datetime

    @classmethod
    def from_record(cls, session: ChatSession) -> "ChatSessionResponse":
        return cls(
            id=session.id,
            user_id=session.user_id,
            anonymous_session_id=session.anonymous_session_id,
            title=session.title,
            mode=session.mode,
            created_at=session.created_at,
        )


class MessageResponse(BaseModel):
    id: str
    session_id: str
    role: MessageRole
    content: str
    created_at: datetime

    @classmethod
    def from_record(cls, message: Message) -> "MessageResponse":
        return cls(
            id=message.id,
            session_id=message.session_id,
            role=message.role,
            content=message.content,
            created_at=message.created_at,
        )
