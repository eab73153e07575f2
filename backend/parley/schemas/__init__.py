"""Pydantic request/response schemas for API endpoints."""

from parley.schemas.api_keys import (
    ApiKeyResponse,
    CreateApiKeyRequest,
    CreatedApiKeyResponse,
)
from parley.schemas.auth import (
    LoginRequest,
    MeResponse,
    ResendOtpRequest,
    SignupRequest,
    SignupResponse,
    UserResponse,
    VerifyOtpRequest,
)
from parley.schemas.chat import (
    ChatSessionResponse,
    CompletionMessage,
    CompletionRequest,
    CompletionResponse,
    CreateChatSessionRequest,
    CreateMessageRequest,
    MessageResponse,
)

__all__ = [
    # API keys
    "ApiKeyResponse",
    "CreateApiKeyRequest",
    "CreatedApiKeyResponse",
    # Auth
    "LoginRequest",
    "MeResponse",
    "ResendOtpRequest",
    "SignupRequest",
    "SignupResponse",
    "UserResponse",
    "VerifyOtpRequest",
    # Chat
    "ChatSessionResponse",
    "CompletionMessage",
    "CompletionRequest",
    "CompletionResponse",
    "CreateChatSessionRequest",
    "CreateMessageRequest",
    "MessageResponse",
]
