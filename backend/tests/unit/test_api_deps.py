"""Tests for credential resolution in API dependencies."""

from unittest.mock import MagicMock

import pytest

from parley.api.deps import (
    _bearer_token,
    get_optional_principal,
    get_session_principal,
    require_api_key,
    require_session,
    require_session_or_api_key,
)
from parley.core.auth import create_session_token
from parley.core.config import settings
from parley.core.errors import UnauthorizedError
from parley.services.api_keys import ApiKeyService
from parley.services.principal import AuthMethod, Principal


def _request(cookies: dict | None = None, headers: dict | None = None) -> MagicMock:
    request = MagicMock()
    request.cookies = cookies or {}
    request.headers = headers or {}
    return request


def _session_cookie(user) -> dict:
    token = create_session_token(user_id=user.id, email=user.email)
    return {settings.auth_cookie_name: token}


class TestBearerToken:
    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("Bearer sk-abc", "sk-abc"),
            ("bearer sk-abc", "sk-abc"),
            ("Bearer   sk-abc  ", "sk-abc"),
            ("Basic dXNlcjpwYXNz", None),
            ("Bearer", None),
            ("Bearer    ", None),
        ],
    )
    def test_parses_header(self, header, expected):
        assert _bearer_token(_request(headers={"Authorization": header})) == expected

    def test_missing_header(self):
        assert _bearer_token(_request()) is None


class TestSessionPrincipal:
    async def test_valid_cookie(self, memory_storage, test_user):
        principal = await get_session_principal(
            _request(cookies=_session_cookie(test_user)), memory_storage
        )

        assert principal == Principal(
            user_id=test_user.id,
            email=test_user.email,
            auth_method=AuthMethod.SESSION,
        )

    async def test_no_cookie(self, memory_storage):
        assert await get_session_principal(_request(), memory_storage) is None

    async def test_garbage_cookie(self, memory_storage):
        request = _request(cookies={settings.auth_cookie_name: "not-a-jwt"})
        assert await get_session_principal(request, memory_storage) is None

    async def test_cookie_of_deleted_account(self, memory_storage, test_user):
        request = _request(cookies=_session_cookie(test_user))
        await memory_storage.delete_user(test_user.id)

        assert await get_session_principal(request, memory_storage) is None


class TestRequireSession:
    async def test_rejects_missing_session(self):
        with pytest.raises(UnauthorizedError):
            await require_session(None)

    async def test_passes_principal_through(self, test_user):
        principal = Principal(test_user.id, test_user.email, AuthMethod.SESSION)
        assert await require_session(principal) is principal


class TestRequireApiKey:
    async def test_missing_header(self, memory_storage):
        with pytest.raises(UnauthorizedError, match="API key required"):
            await require_api_key(_request(), memory_storage)

    async def test_valid_key(self, memory_storage, test_user):
        created = await ApiKeyService(memory_storage).create(test_user.id, "laptop")
        request = _request(headers={"Authorization": f"Bearer {created.key}"})

        principal = await require_api_key(request, memory_storage)

        assert principal.user_id == test_user.id
        assert principal.auth_method == AuthMethod.API_KEY


class TestEitherCredential:
    async def test_session_wins_over_key(self, memory_storage, test_user, other_user):
        created = await ApiKeyService(memory_storage).create(other_user.id, "k")
        session = Principal(test_user.id, test_user.email, AuthMethod.SESSION)
        request = _request(headers={"Authorization": f"Bearer {created.key}"})

        principal = await require_session_or_api_key(request, memory_storage, session)

        assert principal is session

    async def test_neither_credential(self, memory_storage):
        with pytest.raises(UnauthorizedError):
            await require_session_or_api_key(_request(), memory_storage, None)

    async def test_optional_is_none_when_anonymous(self, memory_storage):
        assert await get_optional_principal(_request(), memory_storage, None) is None

    async def test_optional_still_rejects_bad_key(self, memory_storage):
        request = _request(headers={"Authorization": "Bearer sk-nope"})

        with pytest.raises(UnauthorizedError):
            await get_optional_principal(request, memory_storage, None)
