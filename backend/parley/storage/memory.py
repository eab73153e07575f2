"""In-memory storage backend.

Used when no database is configured. Entities live in dicts keyed by id
and are replaced (records are immutable) on every state transition.
Contents are lost when the process exits.
"""

import uuid
from dataclasses import replace
from datetime import UTC, datetime

from parley.storage.base import DuplicateEmailError, Storage
from parley.storage.records import (
    ApiKey,
    ChatMode,
    ChatSession,
    EmailVerification,
    Message,
    MessageRole,
    User,
)


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


class MemoryStorage(Storage):
    """Process-local Storage implementation."""

    backend_name = "memory"

    def __init__(self) -> None:
        self._chat_sessions: dict[str, ChatSession] = {}
        self._messages: dict[str, Message] = {}
        self._users: dict[str, User] = {}
        self._email_verifications: dict[str, EmailVerification] = {}
        self._api_keys: dict[str, ApiKey] = {}

    # -- Chat sessions -------------------------------------------------------

    async def get_chat_session(self, session_id: str) -> ChatSession | None:
        return self._chat_sessions.get(session_id)

    async def get_all_chat_sessions(
        self,
        owner_user_id: str | None = None,
        anonymous_session_id: str | None = None,
    ) -> list[ChatSession]:
        if owner_user_id:
            sessions = [
                s for s in self._chat_sessions.values() if s.user_id == owner_user_id
            ]
        else:
            sessions = [
                s
                for s in self._chat_sessions.values()
                if s.user_id is None
                and s.anonymous_session_id == anonymous_session_id
            ]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    async def create_chat_session(
        self,
        title: str,
        mode: ChatMode,
        owner_user_id: str | None = None,
        anonymous_session_id: str | None = None,
    ) -> ChatSession:
        session = ChatSession(
            id=_new_id(),
            user_id=owner_user_id,
            anonymous_session_id=anonymous_session_id,
            title=title,
            mode=ChatMode(mode),
            created_at=_now(),
        )
        self._chat_sessions[session.id] = session
        return session

    # -- Messages ------------------------------------------------------------

    async def get_messages(self, session_id: str) -> list[Message]:
        # sorted() is stable: equal timestamps keep insertion order
        return sorted(
            (m for m in self._messages.values() if m.session_id == session_id),
            key=lambda m: m.created_at,
        )

    async def create_message(
        self, session_id: str, role: MessageRole, content: str
    ) -> Message:
        message = Message(
            id=_new_id(),
            session_id=session_id,
            role=MessageRole(role),
            content=content,
            created_at=_now(),
        )
        self._messages[message.id] = message
        return message

    # -- Users ---------------------------------------------------------------

    async def create_user(self, email: str, password_hash: str) -> User:
        if await self.get_user_by_email(email) is not None:
            raise DuplicateEmailError(email)
        user = User(
            id=_new_id(),
            email=email,
            password_hash=password_hash,
            is_verified=False,
            created_at=_now(),
        )
        self._users[user.id] = user
        return user

    async def get_user_by_email(self, email: str) -> User | None:
        return next((u for u in self._users.values() if u.email == email), None)

    async def get_user_by_id(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    async def mark_user_verified(self, user_id: str) -> None:
        user = self._users.get(user_id)
        if user is not None:
            self._users[user_id] = replace(user, is_verified=True)

    async def delete_user(
        self, user_id: str, *, purge_owned_data: bool = False
    ) -> None:
        self._users.pop(user_id, None)
        self._email_verifications = {
            vid: v
            for vid, v in self._email_verifications.items()
            if v.user_id != user_id
        }
        if not purge_owned_data:
            return

        owned = {sid for sid, s in self._chat_sessions.items() if s.user_id == user_id}
        self._messages = {
            mid: m for mid, m in self._messages.items() if m.session_id not in owned
        }
        for sid in owned:
            del self._chat_sessions[sid]
        self._api_keys = {
            kid: k for kid, k in self._api_keys.items() if k.user_id != user_id
        }

    # -- Email verifications -------------------------------------------------

    async def create_email_verification(
        self, user_id: str, otp_hash: str, expires_at: datetime
    ) -> EmailVerification:
        verification = EmailVerification(
            id=_new_id(),
            user_id=user_id,
            otp_hash=otp_hash,
            expires_at=expires_at,
            is_used=False,
            created_at=_now(),
        )
        self._email_verifications[verification.id] = verification
        return verification

    async def find_email_verification(
        self, user_id: str
    ) -> EmailVerification | None:
        now = _now()
        active = [
            v
            for v in self._email_verifications.values()
            if v.user_id == user_id and not v.is_used and v.expires_at > now
        ]
        if not active:
            return None
        return max(active, key=lambda v: v.created_at)

    async def mark_verification_used(self, verification_id: str) -> None:
        verification = self._email_verifications.get(verification_id)
        if verification is not None:
            self._email_verifications[verification_id] = replace(
                verification, is_used=True
            )

    # -- API keys ------------------------------------------------------------

    async def create_api_key(
        self,
        user_id: str,
        name: str,
        key_hash: str,
        key_prefix: str,
        lookup_digest: str | None = None,
    ) -> ApiKey:
        api_key = ApiKey(
            id=_new_id(),
            user_id=user_id,
            name=name,
            key_hash=key_hash,
            key_prefix=key_prefix,
            last_used_at=None,
            created_at=_now(),
            lookup_digest=lookup_digest,
        )
        self._api_keys[api_key.id] = api_key
        return api_key

    async def get_api_keys_by_user_id(self, user_id: str) -> list[ApiKey]:
        return sorted(
            (k for k in self._api_keys.values() if k.user_id == user_id),
            key=lambda k: k.created_at,
            reverse=True,
        )

    async def get_all_api_keys(self) -> list[ApiKey]:
        return list(self._api_keys.values())

    async def get_api_key_by_lookup_digest(self, lookup_digest: str) -> ApiKey | None:
        return next(
            (k for k in self._api_keys.values() if k.lookup_digest == lookup_digest),
            None,
        )

    async def delete_api_key(self, key_id: str) -> None:
        self._api_keys.pop(key_id, None)

    async def update_api_key_last_used(self, key_hash: str) -> None:
        for key_id, api_key in self._api_keys.items():
            if api_key.key_hash == key_hash:
                self._api_keys[key_id] = replace(api_key, last_used_at=_now())
                return
