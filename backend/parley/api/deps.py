"""Shared dependencies for API endpoints.

Authentication resolves to a Principal (user id, email, credential path)
rather than mutating request state. Two credential paths exist:

- Session cookie: signed JWT set at login, cleared at logout.
- API key: ``Authorization: Bearer sk-...`` header.

Failures are reported as a generic 401 that never says which factor failed.
"""

from typing import Annotated

from fastapi import Depends, Request

from parley.core.auth import decode_session_token
from parley.core.config import settings
from parley.core.errors import UnauthorizedError
from parley.services.api_keys import ApiKeyService
from parley.services.principal import AuthMethod, Principal
from parley.storage.base import Storage


def get_storage(request: Request) -> Storage:
    """Return the storage backend built at startup."""
    return request.app.state.storage


StorageDep = Annotated[Storage, Depends(get_storage)]


def _bearer_token(request: Request) -> str | None:
    """Extract the token from an ``Authorization: Bearer`` header, if well-formed."""
    header = request.headers.get("Authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token


async def get_session_principal(
    request: Request,
    storage: StorageDep,
) -> Principal | None:
    """Resolve the session cookie, or None if absent or invalid.

    Sessions of deleted accounts are treated as absent.
    """
    token = request.cookies.get(settings.auth_cookie_name)
    if not token:
        return None

    claims = decode_session_token(token)
    if claims is None:
        return None

    if await storage.get_user_by_id(claims.user_id) is None:
        return None

    return Principal(
        user_id=claims.user_id,
        email=claims.email,
        auth_method=AuthMethod.SESSION,
    )


SessionPrincipal = Annotated[Principal | None, Depends(get_session_principal)]


async def require_session(principal: SessionPrincipal) -> Principal:
    """Require a valid session cookie.

    Raises:
        UnauthorizedError: No valid session.
    """
    if principal is None:
        raise UnauthorizedError()
    return principal


async def require_api_key(request: Request, storage: StorageDep) -> Principal:
    """Require a valid bearer API key.

    Raises:
        UnauthorizedError: Missing or malformed header, unknown key, or a
            key whose owner was deleted.
    """
    token = _bearer_token(request)
    if token is None:
        raise UnauthorizedError("API key required")
    return await ApiKeyService(storage).authenticate(token)


async def require_session_or_api_key(
    request: Request,
    storage: StorageDep,
    session: SessionPrincipal,
) -> Principal:
    """Accept either credential path; the session cookie wins when both exist.

    Raises:
        UnauthorizedError: Neither a valid session nor a valid API key.
    """
    if session is not None:
        return session

    token = _bearer_token(request)
    if token is None:
        raise UnauthorizedError()
    return await ApiKeyService(storage).authenticate(token)


async def get_optional_principal(
    request: Request,
    storage: StorageDep,
    session: SessionPrincipal,
) -> Principal | None:
    """Resolve the caller if any credential is present, else None (anonymous).

    A bearer key that is present but invalid is still rejected.
    """
    if session is not None:
        return session

    token = _bearer_token(request)
    if token is None:
        return None
    return await ApiKeyService(storage).authenticate(token)


SessionUser = Annotated[Principal, Depends(require_session)]
CurrentPrincipal = Annotated[Principal, Depends(require_session_or_api_key)]
OptionalPrincipal = Annotated[Principal | None, Depends(get_optional_principal)]
