"""Credential helpers: hashing, one-time codes, API keys and session cookies.

Pipeline:
- hash_secret / verify_secret: bcrypt for passwords, OTPs and API keys
- generate_otp: 6-digit email verification code
- generate_api_key / api_key_prefix / api_key_lookup_digest: API key material
- create_session_token / decode_session_token: signed session JWT
- set_session_cookie / clear_session_cookie: httpOnly cookie transport
- validate_password_strength: format rules (sync, no network)
- DUMMY_HASH: timing-safe constant for user enumeration defense
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import bcrypt
import jwt
from fastapi import Response

from parley.core.config import settings
from parley.core.errors import ValidationError

_AUDIENCE = "parley"

# Pre-computed bcrypt hash for timing-safe comparison on user-not-found.
# Security: prevents user enumeration via response time differences.
DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"

API_KEY_PREFIX_LENGTH = 12
_API_KEY_SCHEME = "sk-"
_OTP_DIGITS = 6
_BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True)
class SessionClaims:
    """Identity carried by a valid session cookie.

    Attributes:
        user_id: Owner of the session.
        email: Email the user signed in with.
    """

    user_id: str
    email: str


def hash_secret(secret: str, *, rounds: int | None = None) -> str:
    """Hash a password, OTP or API key with bcrypt.

    Args:
        secret: Plain-text secret.
        rounds: bcrypt cost factor. Defaults to settings.bcrypt_rounds.

    Returns:
        bcrypt hash as a UTF-8 string.
    """
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(secret.encode(), salt).decode()


def verify_secret(secret: str, secret_hash: str) -> bool:
    """Check a plain-text secret against a bcrypt hash.

    Malformed hashes are treated as a mismatch.
    """
    try:
        return bcrypt.checkpw(secret.encode(), secret_hash.encode())
    except ValueError:
        return False


def generate_otp() -> str:
    """Generate a 6-digit numeric one-time code from a CSPRNG."""
    return f"{secrets.randbelow(10**_OTP_DIGITS):0{_OTP_DIGITS}d}"


def generate_api_key() -> str:
    """Generate a new raw API key (``sk-`` followed by 48 hex characters)."""
    return f"{_API_KEY_SCHEME}{secrets.token_hex(24)}"


def api_key_prefix(raw_key: str) -> str:
    """Return the non-secret display fragment of an API key."""
    return raw_key[:API_KEY_PREFIX_LENGTH]


def api_key_lookup_digest(raw_key: str) -> str:
    """Return the SHA-256 digest used to index an API key.

    The digest only narrows the candidate set. The salted bcrypt hash is
    still verified before a key is accepted.
    """
    return hashlib.sha256(raw_key.encode()).hexdigest()


def create_session_token(
    *,
    user_id: str,
    email: str,
    secret: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed session JWT.

    Args:
        user_id: User id for the sub claim.
        email: User email, carried alongside the id.
        secret: HMAC signing secret. Defaults to settings.auth_secret.
        expires_delta: Time until expiration. Defaults to
            settings.session_max_age_days.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    ttl = expires_delta or timedelta(days=settings.session_max_age_days)
    payload = {
        "sub": user_id,
        "email": email,
        "aud": _AUDIENCE,
        "iss": settings.auth_issuer,
        "exp": now + ttl,
        "iat": now,
    }
    signing_key = secret or settings.auth_secret.get_secret_value()
    return jwt.encode(payload, signing_key, algorithm="HS256")


def decode_session_token(token: str) -> SessionClaims | None:
    """Decode and verify a session JWT.

    Returns:
        SessionClaims if the token is valid, None for any failure
        (bad signature, expired, wrong audience/issuer, missing claims).
    """
    try:
        payload = jwt.decode(
            token,
            settings.auth_secret.get_secret_value(),
            algorithms=["HS256"],
            audience=_AUDIENCE,
            issuer=settings.auth_issuer,
        )
        return SessionClaims(user_id=str(payload["sub"]), email=str(payload["email"]))
    except (jwt.InvalidTokenError, KeyError):
        return None


def set_session_cookie(response: Response, token: str) -> None:
    """Set the httpOnly session cookie on a response.

    Args:
        response: FastAPI response object.
        token: Session JWT.
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=int(timedelta(days=settings.session_max_age_days).total_seconds()),
        domain=settings.auth_cookie_domain or None,
    )


def clear_session_cookie(response: Response) -> None:
    """Remove the session cookie (logout)."""
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        domain=settings.auth_cookie_domain or None,
    )


def validate_password_strength(password: str) -> None:
    """Validate password length (8-128 characters, at most 72 bytes encoded).

    bcrypt only accepts inputs up to 72 bytes, so multi-byte passwords hit
    the byte limit before the character limit.

    Raises:
        ValidationError: If the password doesn't meet requirements.
    """
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters")
    if len(password) > 128:
        raise ValidationError("Password must be at most 128 characters")
    if len(password.encode()) > _BCRYPT_MAX_BYTES:
        raise ValidationError(
            f"Password must be at most {_BCRYPT_MAX_BYTES} bytes when UTF-8 encoded"
        )
