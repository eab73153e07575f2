"""Chat endpoints: LLM completions, sessions and messages.

Ownership rules:
- Signed-in callers (session cookie or API key) see and create only
  sessions owned by their account.
- Anonymous callers identify their device with ``anonymous_session_id``
  and see only unowned sessions carrying that token.

A session the caller can't access is reported as not found.
"""

from typing import Annotated

from fastapi import APIRouter, Query, Request

from parley.api.deps import OptionalPrincipal, StorageDep
from parley.core.config import settings
from parley.core.errors import (
    APIError,
    NotFoundError,
    ServiceUnavailableError,
    ValidationError,
)
from parley.core.rate_limiting import limiter
from parley.core.responses import DataResponse
from parley.providers.errors import AuthenticationError, ProviderError, RateLimitError
from parley.providers.factory import get_llm_provider
from parley.providers.llm.base import LLMMessage
from parley.schemas.chat import (
    ChatSessionResponse,
    CompletionRequest,
    CompletionResponse,
    CreateChatSessionRequest,
    CreateMessageRequest,
    MessageResponse,
)
from parley.services.principal import Principal
from parley.storage.base import Storage
from parley.storage.records import ChatSession

router = APIRouter()

AnonymousToken = Annotated[str | None, Query(max_length=128)]


def _can_access(
    session: ChatSession,
    principal: Principal | None,
    anonymous_session_id: str | None,
) -> bool:
    if principal is not None:
        return session.user_id == principal.user_id
    return (
        session.user_id is None
        and session.anonymous_session_id == anonymous_session_id
    )


async def _get_accessible_session(
    storage: Storage,
    session_id: str,
    principal: Principal | None,
    anonymous_session_id: str | None,
) -> ChatSession:
    session = await storage.get_chat_session(session_id)
    if session is None or not _can_access(session, principal, anonymous_session_id):
        raise NotFoundError("Session", session_id)
    return session


# ===================================================================
# POST /chat/completions
# ===================================================================


@router.post("/completions")
@limiter.limit(settings.rate_limit_llm)
async def create_completion(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: CompletionRequest,
    _principal: OptionalPrincipal,
) -> DataResponse[CompletionResponse]:
    """Proxy a conversation to the LLM and return the assistant reply.

    ``mode`` picks the model. Returns 503 when no LLM credential is
    configured or the provider rejects it.
    """
    # Resolved here, not as a dependency, so a malformed body is a 400
    # even when no LLM credential is configured.
    llm = get_llm_provider()
    messages = [LLMMessage(role=m.role, content=m.content) for m in body.messages]

    try:
        result = await llm.complete(messages, body.mode)
    except (AuthenticationError, RateLimitError) as exc:
        raise ServiceUnavailableError("AI service is temporarily unavailable") from exc
    except ProviderError as exc:
        raise APIError(
            code="LLM_PROVIDER_ERROR",
            message="Failed to get AI response",
            status_code=502,
        ) from exc

    return DataResponse(
        data=CompletionResponse(content=result.content, model=result.model)
    )


# ===================================================================
# Sessions
# ===================================================================


@router.get("/sessions")
async def list_sessions(
    storage: StorageDep,
    principal: OptionalPrincipal,
    anonymous_session_id: AnonymousToken = None,
) -> DataResponse[list[ChatSessionResponse]]:
    """List the caller's sessions, newest first."""
    if principal is not None:
        sessions = await storage.get_all_chat_sessions(owner_user_id=principal.user_id)
    else:
        sessions = await storage.get_all_chat_sessions(
            anonymous_session_id=anonymous_session_id
        )
    return DataResponse(data=[ChatSessionResponse.from_record(s) for s in sessions])


@router.post("/sessions", status_code=201)
async def create_session(
    body: CreateChatSessionRequest,
    storage: StorageDep,
    principal: OptionalPrincipal,
) -> DataResponse[ChatSessionResponse]:
    """Start a session owned by the account, or by the anonymous token.

    Exactly one of owner and token is recorded.
    """
    if principal is not None:
        session = await storage.create_chat_session(
            body.title, body.mode, owner_user_id=principal.user_id
        )
    else:
        if not body.anonymous_session_id:
            raise ValidationError(
                "anonymous_session_id is required when not signed in"
            )
        session = await storage.create_chat_session(
            body.title, body.mode, anonymous_session_id=body.anonymous_session_id
        )
    return DataResponse(data=ChatSessionResponse.from_record(session))


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    storage: StorageDep,
    principal: OptionalPrincipal,
    anonymous_session_id: AnonymousToken = None,
) -> DataResponse[ChatSessionResponse]:
    session = await _get_accessible_session(
        storage, session_id, principal, anonymous_session_id
    )
    return DataResponse(data=ChatSessionResponse.from_record(session))


@router.get("/sessions/{session_id}/messages")
async def list_messages(
    session_id: str,
    storage: StorageDep,
    principal: OptionalPrincipal,
    anonymous_session_id: AnonymousToken = None,
) -> DataResponse[list[MessageResponse]]:
    """Messages of a session, oldest first."""
    await _get_accessible_session(storage, session_id, principal, anonymous_session_id)
    messages = await storage.get_messages(session_id)
    return DataResponse(data=[MessageResponse.from_record(m) for m in messages])


# ===================================================================
# POST /chat/messages
# ===================================================================


@router.post("/messages", status_code=201)
async def create_message(
    body: CreateMessageRequest,
    storage: StorageDep,
    principal: OptionalPrincipal,
) -> DataResponse[MessageResponse]:
    """Append a message to a session the caller can access."""
    await _get_accessible_session(
        storage, body.session_id, principal, body.anonymous_session_id
    )
    message = await storage.create_message(body.session_id, body.role, body.content)
    return DataResponse(data=MessageResponse.from_record(message))
