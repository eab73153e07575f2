"""Tests for ApiKeyService: creation, listing, revocation, authentication."""

from dataclasses import asdict

import pytest

from parley.core.auth import (
    api_key_lookup_digest,
    api_key_prefix,
    generate_api_key,
    hash_secret,
)
from parley.core.errors import NotFoundError, UnauthorizedError, ValidationError
from parley.services.api_keys import ApiKeyService
from parley.services.principal import AuthMethod
from parley.storage.memory import MemoryStorage
from parley.storage.records import User


@pytest.fixture
def service(memory_storage: MemoryStorage) -> ApiKeyService:
    return ApiKeyService(memory_storage)


class TestCreate:
    async def test_laptop_key_scenario(self, service, memory_storage, test_user):
        """The raw key is returned once; reads only ever show the prefix."""
        created = await service.create(test_user.id, "laptop")

        assert created.key.startswith("sk-")
        assert created.api_key.key_prefix == created.key[:12]
        assert created.api_key.name == "laptop"

        for stored in await memory_storage.get_api_keys_by_user_id(test_user.id):
            values = asdict(stored)
            assert "key" not in values
            assert created.key not in values.values()
            assert stored.key_hash != created.key

    async def test_name_is_trimmed(self, service, test_user):
        created = await service.create(test_user.id, "  ci runner  ")
        assert created.api_key.name == "ci runner"

    @pytest.mark.parametrize("name", ["", "   ", "x" * 101])
    async def test_invalid_name_rejected(self, service, memory_storage, test_user, name):
        with pytest.raises(ValidationError):
            await service.create(test_user.id, name)

        assert await memory_storage.get_all_api_keys() == []


class TestAuthenticate:
    async def test_valid_key_resolves_owner(self, service, memory_storage, test_user):
        created = await service.create(test_user.id, "laptop")

        principal = await service.authenticate(created.key)

        assert principal.user_id == test_user.id
        assert principal.email == test_user.email
        assert principal.auth_method == AuthMethod.API_KEY
        [stored] = await memory_storage.get_api_keys_by_user_id(test_user.id)
        assert stored.last_used_at is not None

    async def test_unknown_key_rejected(self, service, test_user):
        await service.create(test_user.id, "laptop")

        with pytest.raises(UnauthorizedError):
            await service.authenticate(generate_api_key())

    async def test_empty_key_rejected(self, service):
        with pytest.raises(UnauthorizedError):
            await service.authenticate("")

    async def test_dangling_key_rejected(self, service, memory_storage, test_user):
        """A key whose owner was deleted fails authentication cleanly."""
        created = await service.create(test_user.id, "laptop")
        await memory_storage.delete_user(test_user.id)

        with pytest.raises(UnauthorizedError, match="Invalid API key"):
            await service.authenticate(created.key)

    async def test_key_without_lookup_digest_found_by_scan(
        self, service, memory_storage, test_user
    ):
        raw_key = generate_api_key()
        await memory_storage.create_api_key(
            test_user.id, "legacy", hash_secret(raw_key), api_key_prefix(raw_key)
        )

        principal = await service.authenticate(raw_key)

        assert principal.user_id == test_user.id

    async def test_digest_match_with_wrong_hash_rejected(
        self, service, memory_storage, test_user
    ):
        """The digest only narrows the search; bcrypt still has the last word."""
        raw_key = generate_api_key()
        await memory_storage.create_api_key(
            test_user.id,
            "tampered",
            hash_secret("something-else"),
            api_key_prefix(raw_key),
            lookup_digest=api_key_lookup_digest(raw_key),
        )

        with pytest.raises(UnauthorizedError):
            await service.authenticate(raw_key)


class TestRevoke:
    async def test_revoke_own_key(self, service, memory_storage, test_user):
        created = await service.create(test_user.id, "laptop")

        await service.revoke(test_user.id, created.api_key.id)

        assert await service.list_for_user(test_user.id) == []
        with pytest.raises(UnauthorizedError):
            await service.authenticate(created.key)

    async def test_cannot_revoke_someone_elses_key(
        self, service, test_user: User, other_user: User
    ):
        created = await service.create(other_user.id, "desktop")

        with pytest.raises(NotFoundError):
            await service.revoke(test_user.id, created.api_key.id)

        assert len(await service.list_for_user(other_user.id)) == 1

    async def test_revoke_unknown_key(self, service, test_user):
        with pytest.raises(NotFoundError):
            await service.revoke(test_user.id, "missing-id")
