"""Plain data records returned by every storage backend.

Backends never leak their own identifier or row types past the Storage
interface: ids are strings and timestamps are timezone-aware UTC datetimes.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ChatMode(str, Enum):
    """Conversation mode; picks the completion model."""

    CHAT = "chat"
    CODE = "code"


class MessageRole(str, Enum):
    """Author of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class User:
    """Registered account.

    Attributes:
        id: Backend-assigned identifier.
        email: Unique email address.
        password_hash: bcrypt hash. Never sent to clients.
        is_verified: Whether the email address has been confirmed.
        created_at: Registration timestamp.
    """

    id: str
    email: str
    password_hash: str
    is_verified: bool
    created_at: datetime


@dataclass(frozen=True)
class EmailVerification:
    """One-time code issued to confirm an email address.

    Attributes:
        id: Backend-assigned identifier.
        user_id: User the code was issued to.
        otp_hash: bcrypt hash of the code.
        expires_at: Instant after which the code is no longer accepted.
        is_used: Set once the code has been consumed; never reset.
        created_at: Issue timestamp.
    """

    id: str
    user_id: str
    otp_hash: str
    expires_at: datetime
    is_used: bool
    created_at: datetime


@dataclass(frozen=True)
class ApiKey:
    """Stored API key. Holds hashes only, never the raw secret.

    Attributes:
        id: Backend-assigned identifier.
        user_id: Owner of the key.
        name: Caller-chosen label (e.g. "laptop").
        key_hash: bcrypt hash of the raw key.
        key_prefix: Non-secret display fragment of the raw key.
        last_used_at: Last successful authentication, None if never used.
        created_at: Creation timestamp.
        lookup_digest: SHA-256 of the raw key used as an index. None for
            keys created before indexing existed.
    """

    id: str
    user_id: str
    name: str
    key_hash: str
    key_prefix: str
    last_used_at: datetime | None
    created_at: datetime
    lookup_digest: str | None = None


@dataclass(frozen=True)
class CreatedApiKey:
    """Caller-facing result of creating an API key.

    The raw ``key`` exists only on this object; it is never persisted and
    cannot be read back from storage.
    """

    api_key: ApiKey
    key: str


@dataclass(frozen=True)
class ChatSession:
    """Conversation owned by a user OR scoped to an anonymous client token.

    Attributes:
        id: Backend-assigned identifier.
        user_id: Owning user, None for anonymous sessions.
        anonymous_session_id: Client token for anonymous sessions.
        title: Display title.
        mode: Conversation mode.
        created_at: Creation timestamp.
    """

    id: str
    user_id: str | None
    anonymous_session_id: str | None
    title: str
    mode: ChatMode
    created_at: datetime


@dataclass(frozen=True)
class Message:
    """Single append-only chat message."""

    id: str
    session_id: str
    role: MessageRole
    content: str
    created_at: datetime
