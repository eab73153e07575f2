import socket
import uuid
from collections.abc import AsyncGenerator, Callable, Iterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr

from parley.core.auth import create_session_token
from parley.core.config import settings
from parley.core.rate_limiting import limiter
from parley.providers import factory
from parley.providers.llm.mock_adapter import MockLLMProvider
from parley.storage.base import Storage
from parley.storage.memory import MemoryStorage
from parley.storage.mongo import MongoStorage
from parley.storage.records import ChatMode, User
from parley.storage.sql import SqlStorage

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105

MONGODB_TEST_URI = "mongodb://127.0.0.1:27017"
SQLITE_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


def _is_mongodb_available() -> bool:
    """Check if MongoDB is accepting connections on port 27017."""
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("127.0.0.1", 27017))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_MONGODB_AVAILABLE = _is_mongodb_available()


def skip_if_no_mongodb() -> None:
    """Skip test if MongoDB is not available."""
    if not _MONGODB_AVAILABLE:
        pytest.skip(
            "MongoDB not available on port 27017. "
            "Start it with: docker run -p 27017:27017 mongo"
        )


# =============================================================================
# Settings isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Fast hashing, no rate limits, plain-HTTP cookies, known defaults."""
    monkeypatch.setattr(settings, "bcrypt_rounds", 4)
    monkeypatch.setattr(settings, "auth_secret", SecretStr(TEST_AUTH_SECRET))
    monkeypatch.setattr(settings, "auth_cookie_secure", False)
    monkeypatch.setattr(settings, "email_verification_enabled", False)
    monkeypatch.setattr(settings, "user_deletion_purges_owned_data", False)
    monkeypatch.setattr(settings, "groq_api_key", SecretStr(""))
    monkeypatch.setattr(settings, "resend_api_key", SecretStr(""))
    monkeypatch.setattr(limiter, "enabled", False)
    factory.reset_providers()
    yield
    factory.reset_providers()


# =============================================================================
# Storage backends
# =============================================================================


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest_asyncio.fixture
async def sqlite_storage() -> AsyncGenerator[SqlStorage, None]:
    """Relational backend on an in-memory SQLite database."""
    storage = SqlStorage(SQLITE_MEMORY_URL)
    await storage.create_schema()
    yield storage
    await storage.close()


@pytest_asyncio.fixture
async def mongo_storage() -> AsyncGenerator[MongoStorage, None]:
    """Document backend on a throwaway database. Skips without MongoDB."""
    skip_if_no_mongodb()

    database_name = f"parley_test_{uuid.uuid4().hex[:12]}"
    storage = MongoStorage(MONGODB_TEST_URI, database_name)
    await storage.connect()
    yield storage
    await storage._client.drop_database(database_name)
    await storage.close()


@pytest.fixture(params=["memory", "sqlite", "mongodb"])
def storage(request: pytest.FixtureRequest) -> Storage:
    """Every backend, for tests of the shared Storage contract."""
    fixture_name = {
        "memory": "memory_storage",
        "sqlite": "sqlite_storage",
        "mongodb": "mongo_storage",
    }[request.param]
    return request.getfixturevalue(fixture_name)


# =============================================================================
# LLM
# =============================================================================


@pytest.fixture
def mock_llm() -> Iterator[MockLLMProvider]:
    """Inject a MockLLMProvider into the provider factory singleton."""
    mock = MockLLMProvider(
        {
            ChatMode.CHAT: "Hello! How can I help?",
            ChatMode.CODE: "def add(a, b):\n    return a + b",
        }
    )
    factory._llm_provider = mock

    yield mock

    factory.reset_providers()


# =============================================================================
# API
# =============================================================================


@pytest_asyncio.fixture
async def client(memory_storage: MemoryStorage) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for an app serving from the in-memory backend."""
    from parley.main import create_app

    app = create_app(storage=memory_storage)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def test_user(memory_storage: MemoryStorage) -> User:
    """Verified account in the in-memory backend (password 'correct-horse-1')."""
    from parley.core.auth import hash_secret

    user = await memory_storage.create_user(
        "alice@example.com", hash_secret("correct-horse-1")
    )
    await memory_storage.mark_user_verified(user.id)
    return user


@pytest_asyncio.fixture
async def other_user(memory_storage: MemoryStorage) -> User:
    """Second account for cross-user isolation tests."""
    from parley.core.auth import hash_secret

    user = await memory_storage.create_user(
        "bob@example.com", hash_secret("battery-staple-2")
    )
    await memory_storage.mark_user_verified(user.id)
    return user


@pytest.fixture
def sign_in(client: AsyncClient) -> Callable[[User], None]:
    """Return a function that attaches a session cookie for a user to client."""

    def _sign_in(user: User) -> None:
        token = create_session_token(user_id=user.id, email=user.email)
        client.cookies.set(settings.auth_cookie_name, token)

    return _sign_in


@pytest.fixture
def auth_client(
    client: AsyncClient, test_user: User, sign_in: Callable[[User], None]
) -> AsyncClient:
    """Client signed in as test_user via the session cookie."""
    sign_in(test_user)
    return client
