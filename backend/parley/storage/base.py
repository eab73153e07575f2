"""Abstract storage interface shared by all persistence backends.

Callers depend on Storage only; the concrete backend (in-memory,
relational, document store) is picked once at startup by
parley.storage.factory and injected into request handlers.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from parley.storage.records import (
    ApiKey,
    ChatMode,
    ChatSession,
    EmailVerification,
    Message,
    MessageRole,
    User,
)


class StorageError(Exception):
    """Base class for errors raised by storage backends."""


class DuplicateEmailError(StorageError):
    """A user with this email address already exists."""

    def __init__(self, email: str) -> None:
        super().__init__(f"Email already registered: {email}")
        self.email = email


class Storage(ABC):
    """Uniform CRUD surface over users, credentials, sessions and messages.

    Every operation is a single logical write or read; no partial
    multi-entity state is ever exposed. Lookups of unknown ids return None
    (or an empty list) rather than raising.
    """

    backend_name: str = "abstract"

    async def connect(self) -> None:  # noqa: B027 - optional hook
        """Open connections eagerly. Backends also connect lazily on first use."""

    async def close(self) -> None:  # noqa: B027 - optional hook
        """Release connections held by the backend."""

    # -- Chat sessions -------------------------------------------------------

    @abstractmethod
    async def get_chat_session(self, session_id: str) -> ChatSession | None:
        """Fetch a chat session by id."""

    @abstractmethod
    async def get_all_chat_sessions(
        self,
        owner_user_id: str | None = None,
        anonymous_session_id: str | None = None,
    ) -> list[ChatSession]:
        """List sessions visible to a caller, newest first.

        If ``owner_user_id`` is given, only sessions owned by that user are
        returned. Otherwise only ownerless sessions whose anonymous token
        equals ``anonymous_session_id`` are returned (a session without a
        token matches an absent token).
        """

    @abstractmethod
    async def create_chat_session(
        self,
        title: str,
        mode: ChatMode,
        owner_user_id: str | None = None,
        anonymous_session_id: str | None = None,
    ) -> ChatSession:
        """Create a chat session.

        Callers set exactly one of ``owner_user_id`` / ``anonymous_session_id``;
        the storage layer does not enforce it.
        """

    # -- Messages ------------------------------------------------------------

    @abstractmethod
    async def get_messages(self, session_id: str) -> list[Message]:
        """List a session's messages, oldest first."""

    @abstractmethod
    async def create_message(
        self, session_id: str, role: MessageRole, content: str
    ) -> Message:
        """Append a message to a session."""

    # -- Users ---------------------------------------------------------------

    @abstractmethod
    async def create_user(self, email: str, password_hash: str) -> User:
        """Create an unverified user.

        Raises:
            DuplicateEmailError: If the email is already registered.
        """

    @abstractmethod
    async def get_user_by_email(self, email: str) -> User | None:
        """Fetch a user by exact email."""

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> User | None:
        """Fetch a user by id."""

    @abstractmethod
    async def mark_user_verified(self, user_id: str) -> None:
        """Set is_verified. Idempotent; unknown ids are ignored."""

    @abstractmethod
    async def delete_user(
        self, user_id: str, *, purge_owned_data: bool = False
    ) -> None:
        """Delete a user and their email verifications.

        Sessions, messages and API keys are kept unless
        ``purge_owned_data`` is set, in which case the user's API keys,
        owned sessions and those sessions' messages are removed as well.
        """

    # -- Email verifications -------------------------------------------------

    @abstractmethod
    async def create_email_verification(
        self, user_id: str, otp_hash: str, expires_at: datetime
    ) -> EmailVerification:
        """Store a new unused verification code."""

    @abstractmethod
    async def find_email_verification(
        self, user_id: str
    ) -> EmailVerification | None:
        """Return the newest unused, unexpired verification for a user."""

    @abstractmethod
    async def mark_verification_used(self, verification_id: str) -> None:
        """Set is_used. Idempotent; unknown ids are ignored."""

    # -- API keys ------------------------------------------------------------

    @abstractmethod
    async def create_api_key(
        self,
        user_id: str,
        name: str,
        key_hash: str,
        key_prefix: str,
        lookup_digest: str | None = None,
    ) -> ApiKey:
        """Store a new API key (hashes and display prefix only)."""

    @abstractmethod
    async def get_api_keys_by_user_id(self, user_id: str) -> list[ApiKey]:
        """List a user's keys, newest first."""

    @abstractmethod
    async def get_all_api_keys(self) -> list[ApiKey]:
        """List every stored key (credential-matching scans only)."""

    @abstractmethod
    async def get_api_key_by_lookup_digest(self, lookup_digest: str) -> ApiKey | None:
        """Fetch the key indexed by a SHA-256 lookup digest."""

    @abstractmethod
    async def delete_api_key(self, key_id: str) -> None:
        """Delete a key. Unknown ids are ignored."""

    @abstractmethod
    async def update_api_key_last_used(self, key_hash: str) -> None:
        """Stamp last_used_at on the key with this hash. No-op if none matches."""
