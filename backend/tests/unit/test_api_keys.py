"""Tests for API key endpoints under /api/v1/keys."""

import pytest
from httpx import AsyncClient

from parley.services.api_keys import ApiKeyService


class TestAuthRequired:
    @pytest.mark.parametrize(
        ("method", "path"),
        [("GET", "/api/v1/keys"), ("POST", "/api/v1/keys"), ("DELETE", "/api/v1/keys/x")],
    )
    async def test_anonymous_is_401(self, client: AsyncClient, method, path):
        response = await client.request(method, path, json={"name": "laptop"})
        assert response.status_code == 401

    async def test_api_key_cannot_manage_keys(
        self, client: AsyncClient, memory_storage, test_user
    ):
        created = await ApiKeyService(memory_storage).create(test_user.id, "cli")
        headers = {"Authorization": f"Bearer {created.key}"}

        listed = await client.get("/api/v1/keys", headers=headers)
        minted = await client.post(
            "/api/v1/keys", json={"name": "sneaky"}, headers=headers
        )

        assert listed.status_code == 401
        assert minted.status_code == 401
        assert len(await memory_storage.get_api_keys_by_user_id(test_user.id)) == 1


class TestCreateAndList:
    async def test_raw_key_returned_once(self, auth_client: AsyncClient):
        created = await auth_client.post("/api/v1/keys", json={"name": "laptop"})

        assert created.status_code == 201
        data = created.json()["data"]
        assert data["key"].startswith("sk-")
        assert data["key_prefix"] == data["key"][:12]
        assert data["name"] == "laptop"
        assert data["last_used_at"] is None

        listed = await auth_client.get("/api/v1/keys")

        [entry] = listed.json()["data"]
        assert entry["id"] == data["id"]
        assert "key" not in entry
        assert "key_hash" not in entry
        assert data["key"] not in listed.text

    async def test_new_key_authenticates(self, auth_client: AsyncClient, test_user):
        created = await auth_client.post("/api/v1/keys", json={"name": "laptop"})
        raw_key = created.json()["data"]["key"]
        auth_client.cookies.clear()

        response = await auth_client.get(
            "/api/v1/auth/me", headers={"Authorization": f"Bearer {raw_key}"}
        )

        assert response.status_code == 200
        assert response.json()["data"]["id"] == test_user.id
        assert response.json()["data"]["auth_method"] == "api_key"

    async def test_key_use_updates_last_used(
        self, auth_client: AsyncClient, memory_storage, test_user
    ):
        created = await auth_client.post("/api/v1/keys", json={"name": "laptop"})
        raw_key = created.json()["data"]["key"]
        auth_client.cookies.clear()

        await auth_client.get(
            "/api/v1/chat/sessions", headers={"Authorization": f"Bearer {raw_key}"}
        )

        [stored] = await memory_storage.get_api_keys_by_user_id(test_user.id)
        assert stored.last_used_at is not None

    @pytest.mark.parametrize("name", ["", "x" * 101])
    async def test_invalid_name_is_400(self, auth_client: AsyncClient, name):
        response = await auth_client.post("/api/v1/keys", json={"name": name})
        assert response.status_code == 400


class TestRevoke:
    async def test_revoke_own_key(self, auth_client: AsyncClient):
        created = await auth_client.post("/api/v1/keys", json={"name": "laptop"})
        key_id = created.json()["data"]["id"]

        response = await auth_client.delete(f"/api/v1/keys/{key_id}")
        again = await auth_client.delete(f"/api/v1/keys/{key_id}")

        assert response.status_code == 200
        assert response.json()["data"] == {"id": key_id, "deleted": True}
        assert again.status_code == 404
        assert (await auth_client.get("/api/v1/keys")).json()["data"] == []

    async def test_other_users_key_is_404(
        self, auth_client: AsyncClient, memory_storage, other_user
    ):
        created = await ApiKeyService(memory_storage).create(other_user.id, "desktop")

        response = await auth_client.delete(f"/api/v1/keys/{created.api_key.id}")

        assert response.status_code == 404
        assert len(await memory_storage.get_api_keys_by_user_id(other_user.id)) == 1


class TestDanglingKeys:
    async def test_key_of_deleted_account_is_401(
        self, client: AsyncClient, sign_in, test_user
    ):
        sign_in(test_user)
        created = await client.post("/api/v1/keys", json={"name": "laptop"})
        raw_key = created.json()["data"]["key"]
        await client.delete("/api/v1/auth/me")
        client.cookies.clear()

        response = await client.get(
            "/api/v1/auth/me", headers={"Authorization": f"Bearer {raw_key}"}
        )

        assert response.status_code == 401
