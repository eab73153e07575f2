"""API key management endpoints.

Managing keys needs a session cookie; a key can't be used to mint or
revoke other keys.
"""

from fastapi import APIRouter

from parley.api.deps import SessionUser, StorageDep
from parley.core.responses import DataResponse
from parley.schemas.api_keys import (
    ApiKeyResponse,
    CreateApiKeyRequest,
    CreatedApiKeyResponse,
)
from parley.services.api_keys import ApiKeyService

router = APIRouter()


@router.get("")
async def list_api_keys(
    principal: SessionUser,
    storage: StorageDep,
) -> DataResponse[list[ApiKeyResponse]]:
    """List the caller's keys, newest first. Only prefixes are shown."""
    keys = await ApiKeyService(storage).list_for_user(principal.user_id)
    return DataResponse(data=[ApiKeyResponse.from_record(k) for k in keys])


@router.post("", status_code=201)
async def create_api_key(
    body: CreateApiKeyRequest,
    principal: SessionUser,
    storage: StorageDep,
) -> DataResponse[CreatedApiKeyResponse]:
    """Create a key. The raw key is in this response and nowhere else."""
    created = await ApiKeyService(storage).create(principal.user_id, body.name)
    return DataResponse(data=CreatedApiKeyResponse.from_created(created))


@router.delete("/{key_id}")
async def revoke_api_key(
    key_id: str,
    principal: SessionUser,
    storage: StorageDep,
) -> DataResponse[dict]:
    await ApiKeyService(storage).revoke(principal.user_id, key_id)
    return DataResponse(data={"id": key_id, "deleted": True})
