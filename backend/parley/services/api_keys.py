"""API key management and bearer-key authentication.

Keys are stored as a salted bcrypt hash (verification) plus a SHA-256
lookup digest (index). The raw key is returned once, at creation.
"""

import structlog

from parley.core.auth import (
    api_key_lookup_digest,
    api_key_prefix,
    generate_api_key,
    hash_secret,
    verify_secret,
)
from parley.core.errors import NotFoundError, UnauthorizedError, ValidationError
from parley.services.principal import AuthMethod, Principal
from parley.storage.base import Storage
from parley.storage.records import ApiKey, CreatedApiKey

logger = structlog.get_logger()

_MAX_NAME_LENGTH = 100
_INVALID_KEY = "Invalid API key"


class ApiKeyService:
    """Create, list, revoke and authenticate API keys.

    Args:
        storage: Backend chosen at startup.
    """

    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    async def create(self, user_id: str, name: str) -> CreatedApiKey:
        """Create a key for a user.

        Raises:
            ValidationError: If the name is empty or too long.
        """
        name = name.strip()
        if not name:
            raise ValidationError("API key name is required")
        if len(name) > _MAX_NAME_LENGTH:
            raise ValidationError(
                f"API key name must be at most {_MAX_NAME_LENGTH} characters"
            )

        raw_key = generate_api_key()
        api_key = await self._storage.create_api_key(
            user_id,
            name,
            hash_secret(raw_key),
            api_key_prefix(raw_key),
            lookup_digest=api_key_lookup_digest(raw_key),
        )
        logger.info("api_key_created", user_id=user_id, key_id=api_key.id)
        return CreatedApiKey(api_key=api_key, key=raw_key)

    async def list_for_user(self, user_id: str) -> list[ApiKey]:
        return await self._storage.get_api_keys_by_user_id(user_id)

    async def revoke(self, user_id: str, key_id: str) -> None:
        """Delete one of the user's keys.

        Raises:
            NotFoundError: If the key doesn't exist or belongs to someone else.
        """
        keys = await self._storage.get_api_keys_by_user_id(user_id)
        if not any(key.id == key_id for key in keys):
            raise NotFoundError("API key", key_id)

        await self._storage.delete_api_key(key_id)
        logger.info("api_key_revoked", user_id=user_id, key_id=key_id)

    async def authenticate(self, raw_key: str) -> Principal:
        """Resolve a raw bearer key to its owner.

        Raises:
            UnauthorizedError: No key matches, or the key's owner no longer
                exists (dangling key).
        """
        if not raw_key:
            raise UnauthorizedError("API key required")

        api_key = await self._match(raw_key)
        if api_key is None:
            raise UnauthorizedError(_INVALID_KEY)

        await self._storage.update_api_key_last_used(api_key.key_hash)

        user = await self._storage.get_user_by_id(api_key.user_id)
        if user is None:
            logger.warning("api_key_owner_missing", key_id=api_key.id)
            raise UnauthorizedError(_INVALID_KEY)

        return Principal(
            user_id=user.id,
            email=user.email,
            auth_method=AuthMethod.API_KEY,
        )

    async def _match(self, raw_key: str) -> ApiKey | None:
        candidate = await self._storage.get_api_key_by_lookup_digest(
            api_key_lookup_digest(raw_key)
        )
        if candidate is not None and verify_secret(raw_key, candidate.key_hash):
            return candidate

        # Keys created without a lookup digest can only be found by testing
        # each salted hash in turn.
        for api_key in await self._storage.get_all_api_keys():
            if api_key.lookup_digest is None and verify_secret(
                raw_key, api_key.key_hash
            ):
                return api_key
        return None
