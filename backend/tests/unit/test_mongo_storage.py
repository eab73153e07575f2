"""Tests for the MongoDB backend that need no running server.

Document conversion, id handling and error mapping are checked against a
mocked database. Behavior against a real server is covered by
test_storage_contract.py.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from parley.storage.base import DuplicateEmailError
from parley.storage.mongo import (
    API_KEYS,
    EMAIL_VERIFICATIONS,
    USERS,
    MongoStorage,
    api_key_from_document,
    chat_session_from_document,
    message_from_document,
    user_from_document,
)
from parley.storage.records import ChatMode, MessageRole

_NAIVE = datetime(2026, 1, 2, 3, 4, 5)


@pytest.fixture
def collections() -> dict[str, MagicMock]:
    return {}


@pytest.fixture
def database(collections: dict[str, MagicMock]) -> MagicMock:
    """Mock database that hands out one MagicMock per collection name."""
    db = MagicMock()
    db.__getitem__.side_effect = lambda name: collections.setdefault(
        name, MagicMock()
    )
    return db


@pytest.fixture
def storage(database: MagicMock) -> MongoStorage:
    return MongoStorage("mongodb://unused", "chatapp", database=database)


class TestDocumentConversion:
    """Documents become plain records with string ids and UTC timestamps."""

    def test_user_document(self):
        oid = ObjectId()
        user = user_from_document(
            {
                "_id": oid,
                "email": "alice@example.com",
                "passwordHash": "H1",
                "isVerified": False,
                "createdAt": _NAIVE,
            }
        )

        assert user.id == str(oid)
        assert user.password_hash == "H1"
        assert user.is_verified is False
        assert user.created_at == _NAIVE.replace(tzinfo=UTC)

    def test_chat_session_with_object_id_owner(self):
        owner = ObjectId()
        session = chat_session_from_document(
            {
                "_id": ObjectId(),
                "userId": owner,
                "anonymousSessionId": None,
                "title": "Hi",
                "mode": "code",
                "createdAt": _NAIVE,
            }
        )

        assert session.user_id == str(owner)
        assert isinstance(session.user_id, str)
        assert session.mode == ChatMode.CODE

    def test_anonymous_chat_session_without_user_field(self):
        session = chat_session_from_document(
            {
                "_id": ObjectId(),
                "anonymousSessionId": "tok-123",
                "title": "Hi",
                "createdAt": _NAIVE,
            }
        )

        assert session.user_id is None
        assert session.anonymous_session_id == "tok-123"
        assert session.mode == ChatMode.CHAT

    def test_empty_anonymous_token_kept_as_stored(self):
        session = chat_session_from_document(
            {
                "_id": ObjectId(),
                "userId": None,
                "anonymousSessionId": "",
                "title": "Hi",
                "createdAt": _NAIVE,
            }
        )

        assert session.anonymous_session_id == ""

    def test_message_document(self):
        message = message_from_document(
            {
                "_id": ObjectId(),
                "sessionId": "abc",
                "role": "assistant",
                "content": "hello",
                "createdAt": _NAIVE,
            }
        )

        assert message.role == MessageRole.ASSISTANT
        assert message.session_id == "abc"

    def test_api_key_document_without_digest(self):
        key = api_key_from_document(
            {
                "_id": ObjectId(),
                "userId": ObjectId(),
                "name": "laptop",
                "keyHash": "KH",
                "keyPrefix": "sk-0123456789",
                "createdAt": _NAIVE,
            }
        )

        assert key.lookup_digest is None
        assert key.last_used_at is None
        assert isinstance(key.user_id, str)


class TestMalformedIds:
    """Ids that aren't ObjectIds behave like unknown ids."""

    async def test_get_user_by_malformed_id(self, storage, database):
        assert await storage.get_user_by_id("not-an-object-id") is None
        database.__getitem__.assert_not_called()

    async def test_get_chat_session_by_malformed_id(self, storage, database):
        assert await storage.get_chat_session("tok-123") is None
        database.__getitem__.assert_not_called()

    async def test_mark_verified_with_malformed_id_is_noop(self, storage, database):
        await storage.mark_user_verified("42")
        database.__getitem__.assert_not_called()


class TestWrites:
    """Write paths against the mocked collections."""

    async def test_duplicate_email_maps_to_storage_error(self, storage, collections):
        users = collections.setdefault(USERS, MagicMock())
        users.insert_one = AsyncMock(side_effect=DuplicateKeyError("E11000"))

        with pytest.raises(DuplicateEmailError):
            await storage.create_user("alice@example.com", "H1")

    async def test_create_user_returns_string_id(self, storage, collections):
        oid = ObjectId()
        users = collections.setdefault(USERS, MagicMock())
        users.insert_one = AsyncMock(return_value=MagicMock(inserted_id=oid))

        user = await storage.create_user("alice@example.com", "H1")

        assert user.id == str(oid)
        stored = users.insert_one.call_args.args[0]
        assert stored["passwordHash"] == "H1"
        assert stored["isVerified"] is False

    async def test_api_key_owner_stored_as_object_id(self, storage, collections):
        owner = ObjectId()
        keys = collections.setdefault(API_KEYS, MagicMock())
        keys.insert_one = AsyncMock(return_value=MagicMock(inserted_id=ObjectId()))

        key = await storage.create_api_key(str(owner), "laptop", "KH", "sk-a")

        stored = keys.insert_one.call_args.args[0]
        assert stored["userId"] == owner
        assert "lookupDigest" not in stored
        assert key.user_id == str(owner)


class TestVerificationQuery:
    """find_email_verification filters expiry at query time."""

    async def test_query_filters_unused_and_unexpired(self, storage, collections):
        user_id = str(ObjectId())
        verifications = collections.setdefault(EMAIL_VERIFICATIONS, MagicMock())
        verifications.find_one = AsyncMock(return_value=None)

        assert await storage.find_email_verification(user_id) is None

        query = verifications.find_one.call_args.args[0]
        assert query["userId"] == ObjectId(user_id)
        assert query["isUsed"] is False
        assert "$gt" in query["expiresAt"]
        assert verifications.find_one.call_args.kwargs["sort"] == [("createdAt", -1)]
