"""Authenticated caller identity."""

from dataclasses import dataclass
from enum import Enum


class AuthMethod(str, Enum):
    """How a caller proved its identity."""

    SESSION = "session"
    API_KEY = "api_key"


@dataclass(frozen=True)
class Principal:
    """Identity resolved by the auth dependencies.

    API-key callers get the same shape as cookie sessions, so route
    handlers treat both the same way.

    Attributes:
        user_id: Authenticated user.
        email: The user's email address.
        auth_method: Credential path that produced this principal.
    """

    user_id: str
    email: str
    auth_method: AuthMethod
