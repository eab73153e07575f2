"""Relational storage backend (PostgreSQL via asyncpg, SQLite via aiosqlite).

Each operation opens its own AsyncSession and commits once, so every call
is its own implicit transaction. The engine and session factory are
created lazily on first use and reused for the lifetime of the instance.
"""

from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from parley.models import (
    ApiKeyRow,
    Base,
    ChatSessionRow,
    EmailVerificationRow,
    MessageRow,
    UserRow,
)
from parley.models.base import utcnow
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

logger = structlog.get_logger()


def _engine_options(database_url: str, echo: bool) -> dict[str, Any]:
    """Pick pool settings for the database type.

    SQLite gets no pooling (StaticPool for in-memory databases so every
    session sees the same database). PostgreSQL gets a pre-pinging pool
    that recycles idle connections.
    """
    if database_url.startswith("sqlite"):
        return {
            "echo": echo,
            "poolclass": StaticPool if ":memory:" in database_url else NullPool,
            "connect_args": {"check_same_thread": False},
        }
    return {
        "echo": echo,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }


def _as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _user(row: UserRow) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        is_verified=row.is_verified,
        created_at=_as_utc(row.created_at),
    )


def _verification(row: EmailVerificationRow) -> EmailVerification:
    return EmailVerification(
        id=row.id,
        user_id=row.user_id,
        otp_hash=row.otp_hash,
        expires_at=_as_utc(row.expires_at),
        is_used=row.is_used,
        created_at=_as_utc(row.created_at),
    )


def _api_key(row: ApiKeyRow) -> ApiKey:
    return ApiKey(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        key_hash=row.key_hash,
        key_prefix=row.key_prefix,
        last_used_at=_as_utc(row.last_used_at),
        created_at=_as_utc(row.created_at),
        lookup_digest=row.lookup_digest,
    )


def _chat_session(row: ChatSessionRow) -> ChatSession:
    return ChatSession(
        id=row.id,
        user_id=row.user_id,
        anonymous_session_id=row.anonymous_session_id,
        title=row.title,
        mode=ChatMode(row.mode),
        created_at=_as_utc(row.created_at),
    )


def _message(row: MessageRow) -> Message:
    return Message(
        id=row.id,
        session_id=row.session_id,
        role=MessageRole(row.role),
        content=row.content,
        created_at=_as_utc(row.created_at),
    )


class SqlStorage(Storage):
    """Storage implementation over SQLAlchemy's async ORM."""

    backend_name = "sql"

    def __init__(self, database_url: str, *, echo: bool = False) -> None:
        self._database_url = database_url
        self._echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._engine = create_async_engine(
                self._database_url,
                **_engine_options(self._database_url, self._echo),
            )
            self._session_factory = async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
        return self._session_factory

    async def connect(self) -> None:
        self._sessions()

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    async def create_schema(self) -> None:
        """Create all tables (development and tests; deployments use Alembic)."""
        self._sessions()
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("sql_schema_created", backend=self.backend_name)

    async def drop_schema(self) -> None:
        """Drop all tables."""
        self._sessions()
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    # -- Chat sessions -------------------------------------------------------

    async def get_chat_session(self, session_id: str) -> ChatSession | None:
        async with self._sessions()() as db:
            row = await db.get(ChatSessionRow, session_id)
            return _chat_session(row) if row is not None else None

    async def get_all_chat_sessions(
        self,
        owner_user_id: str | None = None,
        anonymous_session_id: str | None = None,
    ) -> list[ChatSession]:
        stmt = select(ChatSessionRow)
        if owner_user_id:
            stmt = stmt.where(ChatSessionRow.user_id == owner_user_id)
        else:
            token_filter = (
                ChatSessionRow.anonymous_session_id == anonymous_session_id
                if anonymous_session_id is not None
                else ChatSessionRow.anonymous_session_id.is_(None)
            )
            stmt = stmt.where(ChatSessionRow.user_id.is_(None), token_filter)
        stmt = stmt.order_by(ChatSessionRow.created_at.desc())

        async with self._sessions()() as db:
            result = await db.execute(stmt)
            return [_chat_session(row) for row in result.scalars()]

    async def create_chat_session(
        self,
        title: str,
        mode: ChatMode,
        owner_user_id: str | None = None,
        anonymous_session_id: str | None = None,
    ) -> ChatSession:
        row = ChatSessionRow(
            user_id=owner_user_id,
            anonymous_session_id=anonymous_session_id,
            title=title,
            mode=ChatMode(mode).value,
        )
        async with self._sessions()() as db:
            db.add(row)
            await db.commit()
            return _chat_session(row)

    # -- Messages ------------------------------------------------------------

    async def get_messages(self, session_id: str) -> list[Message]:
        stmt = (
            select(MessageRow)
            .where(MessageRow.session_id == session_id)
            .order_by(MessageRow.created_at.asc())
        )
        async with self._sessions()() as db:
            result = await db.execute(stmt)
            return [_message(row) for row in result.scalars()]

    async def create_message(
        self, session_id: str, role: MessageRole, content: str
    ) -> Message:
        row = MessageRow(
            session_id=session_id,
            role=MessageRole(role).value,
            content=content,
        )
        async with self._sessions()() as db:
            db.add(row)
            await db.commit()
            return _message(row)

    # -- Users ---------------------------------------------------------------

    async def create_user(self, email: str, password_hash: str) -> User:
        row = UserRow(email=email, password_hash=password_hash, is_verified=False)
        async with self._sessions()() as db:
            db.add(row)
            try:
                await db.commit()
            except IntegrityError as exc:
                await db.rollback()
                raise DuplicateEmailError(email) from exc
            return _user(row)

    async def get_user_by_email(self, email: str) -> User | None:
        async with self._sessions()() as db:
            result = await db.execute(select(UserRow).where(UserRow.email == email))
            row = result.scalar_one_or_none()
            return _user(row) if row is not None else None

    async def get_user_by_id(self, user_id: str) -> User | None:
        async with self._sessions()() as db:
            row = await db.get(UserRow, user_id)
            return _user(row) if row is not None else None

    async def mark_user_verified(self, user_id: str) -> None:
        async with self._sessions()() as db:
            await db.execute(
                update(UserRow).where(UserRow.id == user_id).values(is_verified=True)
            )
            await db.commit()

    async def delete_user(
        self, user_id: str, *, purge_owned_data: bool = False
    ) -> None:
        async with self._sessions()() as db:
            await db.execute(
                delete(EmailVerificationRow).where(
                    EmailVerificationRow.user_id == user_id
                )
            )
            if purge_owned_data:
                owned_sessions = select(ChatSessionRow.id).where(
                    ChatSessionRow.user_id == user_id
                )
                await db.execute(
                    delete(MessageRow).where(MessageRow.session_id.in_(owned_sessions))
                )
                await db.execute(
                    delete(ChatSessionRow).where(ChatSessionRow.user_id == user_id)
                )
                await db.execute(delete(ApiKeyRow).where(ApiKeyRow.user_id == user_id))
            await db.execute(delete(UserRow).where(UserRow.id == user_id))
            await db.commit()

    # -- Email verifications -------------------------------------------------

    async def create_email_verification(
        self, user_id: str, otp_hash: str, expires_at: datetime
    ) -> EmailVerification:
        row = EmailVerificationRow(
            user_id=user_id,
            otp_hash=otp_hash,
            expires_at=expires_at,
            is_used=False,
        )
        async with self._sessions()() as db:
            db.add(row)
            await db.commit()
            return _verification(row)

    async def find_email_verification(
        self, user_id: str
    ) -> EmailVerification | None:
        stmt = (
            select(EmailVerificationRow)
            .where(
                EmailVerificationRow.user_id == user_id,
                EmailVerificationRow.is_used.is_(False),
                EmailVerificationRow.expires_at > utcnow(),
            )
            .order_by(EmailVerificationRow.created_at.desc())
            .limit(1)
        )
        async with self._sessions()() as db:
            result = await db.execute(stmt)
            row = result.scalar_one_or_none()
            return _verification(row) if row is not None else None

    async def mark_verification_used(self, verification_id: str) -> None:
        async with self._sessions()() as db:
            await db.execute(
                update(EmailVerificationRow)
                .where(EmailVerificationRow.id == verification_id)
                .values(is_used=True)
            )
            await db.commit()

    # -- API keys ------------------------------------------------------------

    async def create_api_key(
        self,
        user_id: str,
        name: str,
        key_hash: str,
        key_prefix: str,
        lookup_digest: str | None = None,
    ) -> ApiKey:
        row = ApiKeyRow(
            user_id=user_id,
            name=name,
            key_hash=key_hash,
            key_prefix=key_prefix,
            lookup_digest=lookup_digest,
            last_used_at=None,
        )
        async with self._sessions()() as db:
            db.add(row)
            await db.commit()
            return _api_key(row)

    async def get_api_keys_by_user_id(self, user_id: str) -> list[ApiKey]:
        stmt = (
            select(ApiKeyRow)
            .where(ApiKeyRow.user_id == user_id)
            .order_by(ApiKeyRow.created_at.desc())
        )
        async with self._sessions()() as db:
            result = await db.execute(stmt)
            return [_api_key(row) for row in result.scalars()]

    async def get_all_api_keys(self) -> list[ApiKey]:
        async with self._sessions()() as db:
            result = await db.execute(select(ApiKeyRow))
            return [_api_key(row) for row in result.scalars()]

    async def get_api_key_by_lookup_digest(self, lookup_digest: str) -> ApiKey | None:
        async with self._sessions()() as db:
            result = await db.execute(
                select(ApiKeyRow).where(ApiKeyRow.lookup_digest == lookup_digest)
            )
            row = result.scalar_one_or_none()
            return _api_key(row) if row is not None else None

    async def delete_api_key(self, key_id: str) -> None:
        async with self._sessions()() as db:
            await db.execute(delete(ApiKeyRow).where(ApiKeyRow.id == key_id))
            await db.commit()

    async def update_api_key_last_used(self, key_hash: str) -> None:
        async with self._sessions()() as db:
            await db.execute(
                update(ApiKeyRow)
                .where(ApiKeyRow.key_hash == key_hash)
                .values(last_used_at=utcnow())
            )
            await db.commit()
