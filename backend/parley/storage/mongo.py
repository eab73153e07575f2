"""Document-store storage backend (MongoDB via pymongo's asyncio client).

Documents use camelCase field names and ObjectId primary keys. ObjectIds
are converted to strings before they leave this module, and id strings
that are not valid ObjectIds behave like unknown ids.
"""

from datetime import UTC, datetime
from typing import Any

import structlog
from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

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

USERS = "users"
CHAT_SESSIONS = "chatSessions"
MESSAGES = "messages"
EMAIL_VERIFICATIONS = "emailVerifications"
API_KEYS = "apiKeys"


def _now() -> datetime:
    return datetime.now(UTC)


def _object_id(value: str) -> ObjectId | None:
    """Parse an id string, returning None for anything that isn't an ObjectId."""
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def _user_ref(user_id: str) -> ObjectId | str:
    """Reference stored in userId fields (ObjectId when the id parses as one)."""
    return _object_id(user_id) or user_id


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def user_from_document(doc: dict[str, Any]) -> User:
    """Convert a users document to a User record."""
    return User(
        id=str(doc["_id"]),
        email=doc["email"],
        password_hash=doc["passwordHash"],
        is_verified=bool(doc.get("isVerified", False)),
        created_at=_as_utc(doc["createdAt"]),
    )


def chat_session_from_document(doc: dict[str, Any]) -> ChatSession:
    """Convert a chatSessions document to a ChatSession record."""
    user_id = doc.get("userId")
    return ChatSession(
        id=str(doc["_id"]),
        user_id=str(user_id) if user_id is not None else None,
        anonymous_session_id=doc.get("anonymousSessionId"),
        title=doc["title"],
        mode=ChatMode(doc.get("mode", ChatMode.CHAT.value)),
        created_at=_as_utc(doc["createdAt"]),
    )


def message_from_document(doc: dict[str, Any]) -> Message:
    """Convert a messages document to a Message record."""
    return Message(
        id=str(doc["_id"]),
        session_id=str(doc["sessionId"]),
        role=MessageRole(doc["role"]),
        content=doc["content"],
        created_at=_as_utc(doc["createdAt"]),
    )


def email_verification_from_document(doc: dict[str, Any]) -> EmailVerification:
    """Convert an emailVerifications document to an EmailVerification record."""
    return EmailVerification(
        id=str(doc["_id"]),
        user_id=str(doc["userId"]),
        otp_hash=doc["otpHash"],
        expires_at=_as_utc(doc["expiresAt"]),
        is_used=bool(doc.get("isUsed", False)),
        created_at=_as_utc(doc["createdAt"]),
    )


def api_key_from_document(doc: dict[str, Any]) -> ApiKey:
    """Convert an apiKeys document to an ApiKey record."""
    return ApiKey(
        id=str(doc["_id"]),
        user_id=str(doc["userId"]),
        name=doc["name"],
        key_hash=doc["keyHash"],
        key_prefix=doc["keyPrefix"],
        last_used_at=_as_utc(doc.get("lastUsedAt")),
        created_at=_as_utc(doc["createdAt"]),
        lookup_digest=doc.get("lookupDigest"),
    )


async def create_indexes(db: AsyncDatabase) -> None:
    """Create the indexes every collection relies on. Idempotent."""
    await db[USERS].create_index([("email", ASCENDING)], unique=True)
    await db[EMAIL_VERIFICATIONS].create_index([("userId", ASCENDING)])
    await db[EMAIL_VERIFICATIONS].create_index(
        [("expiresAt", ASCENDING)], expireAfterSeconds=0
    )
    await db[CHAT_SESSIONS].create_index([("userId", ASCENDING)])
    await db[CHAT_SESSIONS].create_index([("anonymousSessionId", ASCENDING)])
    await db[CHAT_SESSIONS].create_index([("createdAt", DESCENDING)])
    await db[MESSAGES].create_index([("sessionId", ASCENDING)])
    await db[MESSAGES].create_index([("createdAt", ASCENDING)])
    await db[API_KEYS].create_index([("userId", ASCENDING)])
    await db[API_KEYS].create_index([("lookupDigest", ASCENDING)], sparse=True)


class MongoStorage(Storage):
    """Storage implementation over a MongoDB database."""

    backend_name = "mongodb"

    def __init__(
        self,
        uri: str,
        database_name: str = "chatapp",
        *,
        database: AsyncDatabase | None = None,
    ) -> None:
        self._uri = uri
        self._database_name = database_name
        self._client: AsyncMongoClient | None = None
        self._db: AsyncDatabase | None = database

    async def _database(self) -> AsyncDatabase:
        if self._db is None:
            client: AsyncMongoClient = AsyncMongoClient(self._uri, tz_aware=True)
            db = client[self._database_name]
            await create_indexes(db)
            self._client = client
            self._db = db
            logger.info("mongodb_connected", database=self._database_name)
        return self._db

    async def connect(self) -> None:
        await self._database()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
            self._db = None
            logger.info("mongodb_connection_closed")

    # -- Chat sessions -------------------------------------------------------

    async def get_chat_session(self, session_id: str) -> ChatSession | None:
        oid = _object_id(session_id)
        if oid is None:
            return None
        db = await self._database()
        doc = await db[CHAT_SESSIONS].find_one({"_id": oid})
        return chat_session_from_document(doc) if doc is not None else None

    async def get_all_chat_sessions(
        self,
        owner_user_id: str | None = None,
        anonymous_session_id: str | None = None,
    ) -> list[ChatSession]:
        if owner_user_id:
            query: dict[str, Any] = {"userId": _user_ref(owner_user_id)}
        else:
            # {"field": None} matches both null and missing fields
            query = {"userId": None, "anonymousSessionId": anonymous_session_id}
        db = await self._database()
        cursor = db[CHAT_SESSIONS].find(query).sort("createdAt", DESCENDING)
        return [chat_session_from_document(doc) async for doc in cursor]

    async def create_chat_session(
        self,
        title: str,
        mode: ChatMode,
        owner_user_id: str | None = None,
        anonymous_session_id: str | None = None,
    ) -> ChatSession:
        doc = {
            "userId": _user_ref(owner_user_id) if owner_user_id else None,
            "anonymousSessionId": anonymous_session_id,
            "title": title,
            "mode": ChatMode(mode).value,
            "createdAt": _now(),
        }
        db = await self._database()
        result = await db[CHAT_SESSIONS].insert_one(doc)
        doc["_id"] = result.inserted_id
        return chat_session_from_document(doc)

    # -- Messages ------------------------------------------------------------

    async def get_messages(self, session_id: str) -> list[Message]:
        db = await self._database()
        cursor = db[MESSAGES].find({"sessionId": session_id}).sort(
            [("createdAt", ASCENDING), ("_id", ASCENDING)]
        )
        return [message_from_document(doc) async for doc in cursor]

    async def create_message(
        self, session_id: str, role: MessageRole, content: str
    ) -> Message:
        doc = {
            "sessionId": session_id,
            "role": MessageRole(role).value,
            "content": content,
            "createdAt": _now(),
        }
        db = await self._database()
        result = await db[MESSAGES].insert_one(doc)
        doc["_id"] = result.inserted_id
        return message_from_document(doc)

    # -- Users ---------------------------------------------------------------

    async def create_user(self, email: str, password_hash: str) -> User:
        doc = {
            "email": email,
            "passwordHash": password_hash,
            "isVerified": False,
            "createdAt": _now(),
        }
        db = await self._database()
        try:
            result = await db[USERS].insert_one(doc)
        except DuplicateKeyError as exc:
            raise DuplicateEmailError(email) from exc
        doc["_id"] = result.inserted_id
        return user_from_document(doc)

    async def get_user_by_email(self, email: str) -> User | None:
        db = await self._database()
        doc = await db[USERS].find_one({"email": email})
        return user_from_document(doc) if doc is not None else None

    async def get_user_by_id(self, user_id: str) -> User | None:
        oid = _object_id(user_id)
        if oid is None:
            return None
        db = await self._database()
        doc = await db[USERS].find_one({"_id": oid})
        return user_from_document(doc) if doc is not None else None

    async def mark_user_verified(self, user_id: str) -> None:
        oid = _object_id(user_id)
        if oid is None:
            return
        db = await self._database()
        await db[USERS].update_one({"_id": oid}, {"$set": {"isVerified": True}})

    async def delete_user(
        self, user_id: str, *, purge_owned_data: bool = False
    ) -> None:
        db = await self._database()
        ref = _user_ref(user_id)
        await db[EMAIL_VERIFICATIONS].delete_many({"userId": ref})
        if purge_owned_data:
            owned = [
                str(doc["_id"])
                async for doc in db[CHAT_SESSIONS].find({"userId": ref}, {"_id": 1})
            ]
            if owned:
                await db[MESSAGES].delete_many({"sessionId": {"$in": owned}})
            await db[CHAT_SESSIONS].delete_many({"userId": ref})
            await db[API_KEYS].delete_many({"userId": ref})
        oid = _object_id(user_id)
        if oid is not None:
            await db[USERS].delete_one({"_id": oid})

    # -- Email verifications -------------------------------------------------

    async def create_email_verification(
        self, user_id: str, otp_hash: str, expires_at: datetime
    ) -> EmailVerification:
        doc = {
            "userId": _user_ref(user_id),
            "otpHash": otp_hash,
            "expiresAt": expires_at,
            "isUsed": False,
            "createdAt": _now(),
        }
        db = await self._database()
        result = await db[EMAIL_VERIFICATIONS].insert_one(doc)
        doc["_id"] = result.inserted_id
        return email_verification_from_document(doc)

    async def find_email_verification(
        self, user_id: str
    ) -> EmailVerification | None:
        db = await self._database()
        doc = await db[EMAIL_VERIFICATIONS].find_one(
            {
                "userId": _user_ref(user_id),
                "isUsed": False,
                "expiresAt": {"$gt": _now()},
            },
            sort=[("createdAt", DESCENDING)],
        )
        return email_verification_from_document(doc) if doc is not None else None

    async def mark_verification_used(self, verification_id: str) -> None:
        oid = _object_id(verification_id)
        if oid is None:
            return
        db = await self._database()
        await db[EMAIL_VERIFICATIONS].update_one(
            {"_id": oid}, {"$set": {"isUsed": True}}
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
        doc = {
            "userId": _user_ref(user_id),
            "name": name,
            "keyHash": key_hash,
            "keyPrefix": key_prefix,
            "lastUsedAt": None,
            "createdAt": _now(),
        }
        if lookup_digest is not None:
            doc["lookupDigest"] = lookup_digest
        db = await self._database()
        result = await db[API_KEYS].insert_one(doc)
        doc["_id"] = result.inserted_id
        return api_key_from_document(doc)

    async def get_api_keys_by_user_id(self, user_id: str) -> list[ApiKey]:
        db = await self._database()
        cursor = db[API_KEYS].find({"userId": _user_ref(user_id)}).sort(
            "createdAt", DESCENDING
        )
        return [api_key_from_document(doc) async for doc in cursor]

    async def get_all_api_keys(self) -> list[ApiKey]:
        db = await self._database()
        return [api_key_from_document(doc) async for doc in db[API_KEYS].find({})]

    async def get_api_key_by_lookup_digest(self, lookup_digest: str) -> ApiKey | None:
        db = await self._database()
        doc = await db[API_KEYS].find_one({"lookupDigest": lookup_digest})
        return api_key_from_document(doc) if doc is not None else None

    async def delete_api_key(self, key_id: str) -> None:
        oid = _object_id(key_id)
        if oid is None:
            return
        db = await self._database()
        await db[API_KEYS].delete_one({"_id": oid})

    async def update_api_key_last_used(self, key_hash: str) -> None:
        db = await self._database()
        await db[API_KEYS].update_one(
            {"keyHash": key_hash}, {"$set": {"lastUsedAt": _now()}}
        )
