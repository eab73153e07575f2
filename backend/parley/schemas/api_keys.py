"""API key request/response schemas.

List responses carry only the display prefix. The raw key appears in
exactly one response: the one returned by POST /keys.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from parley.storage.records import ApiKey, CreatedApiKey


class CreateApiKeyRequest(BaseModel):
    """Request body for POST /keys."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=100)


class ApiKeyResponse(BaseModel):
    id: str
    name: str
    key_prefix: str
    last_used_at: datetime | None
    created_at: datetime

    @classmethod
    def from_record(cls, api_key: ApiKey) -> "ApiKeyResponse":
        return cls(
            id=api_key.id,
            name=api_key.name,
            key_prefix=api_key.key_prefix,
            last_used_at=api_key.last_used_at,
            created_at=api_key.created_at,
        )


class CreatedApiKeyResponse(ApiKeyResponse):
    """Creation result. ``key`` is shown once and cannot be retrieved again."""

    key: str

    @classmethod
    def from_created(cls, created: CreatedApiKey) -> "CreatedApiKeyResponse":
        return cls(
            **ApiKeyResponse.from_record(created.api_key).model_dump(),
            key=created.key,
        )
