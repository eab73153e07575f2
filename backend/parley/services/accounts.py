"""Account lifecycle: signup, email verification, login and deletion.

Email verification is a toggle (settings.email_verification_enabled):

    disabled:  signup -> verified
    enabled:   signup -> otp_pending --verify(correct, unexpired)--> verified
               otp_pending --verify(wrong or expired)--> otp_pending

Credential failures are reported uniformly so callers can't tell which
factor was wrong.
"""

from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta

import structlog

from parley.core.auth import (
    DUMMY_HASH,
    generate_otp,
    hash_secret,
    validate_password_strength,
    verify_secret,
)
from parley.core.config import settings
from parley.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from parley.storage.base import DuplicateEmailError, Storage
from parley.storage.records import User

logger = structlog.get_logger()

_INVALID_CREDENTIALS = "Invalid email or password"


def normalize_email(email: str) -> str:
    """Canonical form used for storage and lookups."""
    return email.strip().lower()


@dataclass(frozen=True)
class SignupResult:
    """Outcome of a signup.

    Attributes:
        user: The created account.
        otp: Plain verification code to deliver by email. None when
            verification is disabled and the account is already verified.
    """

    user: User
    otp: str | None = None


class AccountService:
    """Account operations over a Storage backend.

    Args:
        storage: Backend chosen at startup.
    """

    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    async def signup(self, email: str, password: str) -> SignupResult:
        """Register a new account.

        Raises:
            ValidationError: If the password fails the strength rules.
            ConflictError: If the email is already registered.
        """
        email = normalize_email(email)
        validate_password_strength(password)

        if await self._storage.get_user_by_email(email) is not None:
            raise ConflictError(
                code="EMAIL_ALREADY_EXISTS",
                message="Email already registered",
            )

        try:
            user = await self._storage.create_user(email, hash_secret(password))
        except DuplicateEmailError as exc:
            # Lost a race with a concurrent signup for the same address
            raise ConflictError(
                code="EMAIL_ALREADY_EXISTS",
                message="Email already registered",
            ) from exc

        if not settings.email_verification_enabled:
            await self._storage.mark_user_verified(user.id)
            logger.info("user_signed_up", user_id=user.id, verified=True)
            return SignupResult(user=replace(user, is_verified=True))

        otp = await self._issue_otp(user.id)
        logger.info("user_signed_up", user_id=user.id, verified=False)
        return SignupResult(user=user, otp=otp)

    async def verify_otp(self, email: str, otp: str) -> User:
        """Consume a verification code and mark the account verified.

        Raises:
            NotFoundError: No account for this email.
            InvalidStateError: The account is already verified.
            ValidationError: No active code, or the code doesn't match.
                A wrong code leaves the pending verification untouched.
        """
        user = await self._storage.get_user_by_email(normalize_email(email))
        if user is None:
            raise NotFoundError("User")
        if user.is_verified:
            raise InvalidStateError("Email is already verified")

        verification = await self._storage.find_email_verification(user.id)
        if verification is None:
            raise ValidationError("Verification code expired or not found")
        if not verify_secret(otp, verification.otp_hash):
            raise ValidationError("Invalid verification code")

        await self._storage.mark_verification_used(verification.id)
        await self._storage.mark_user_verified(user.id)
        logger.info("email_verified", user_id=user.id)
        return replace(user, is_verified=True)

    async def resend_otp(self, email: str) -> tuple[User, str]:
        """Issue a fresh verification code for an unverified account.

        Older codes stay valid until they expire; the newest one is the
        one consulted on verification.

        Returns:
            The user and the plain code to deliver.
        """
        user = await self._storage.get_user_by_email(normalize_email(email))
        if user is None:
            raise NotFoundError("User")
        if user.is_verified:
            raise InvalidStateError("Email is already verified")

        otp = await self._issue_otp(user.id)
        logger.info("verification_code_reissued", user_id=user.id)
        return user, otp

    async def login(self, email: str, password: str) -> User:
        """Check credentials.

        Raises:
            UnauthorizedError: Unknown email or wrong password (same message).
            ForbiddenError: EMAIL_NOT_VERIFIED (403) when verification is enabled
                and the account hasn't been verified yet.
        """
        user = await self._storage.get_user_by_email(normalize_email(email))
        if user is None:
            # Security: always run a bcrypt comparison so response time
            # doesn't reveal whether the account exists.
            verify_secret(password, DUMMY_HASH.decode())
            raise UnauthorizedError(_INVALID_CREDENTIALS)

        if not verify_secret(password, user.password_hash):
            logger.info("login_failed", user_id=user.id)
            raise UnauthorizedError(_INVALID_CREDENTIALS)

        if settings.email_verification_enabled and not user.is_verified:
            raise ForbiddenError(
                "Please verify your email before signing in.",
                code="EMAIL_NOT_VERIFIED",
            )

        logger.info("user_logged_in", user_id=user.id)
        return user

    async def delete_account(self, user_id: str) -> None:
        """Delete an account.

        Email verifications always go with the user. Sessions, messages
        and API keys are removed only when
        settings.user_deletion_purges_owned_data is set.
        """
        if await self._storage.get_user_by_id(user_id) is None:
            raise NotFoundError("User", user_id)

        purge = settings.user_deletion_purges_owned_data
        await self._storage.delete_user(user_id, purge_owned_data=purge)
        logger.info("user_deleted", user_id=user_id, purged_owned_data=purge)

    async def _issue_otp(self, user_id: str) -> str:
        otp = generate_otp()
        expires_at = datetime.now(UTC) + timedelta(minutes=settings.otp_ttl_minutes)
        await self._storage.create_email_verification(
            user_id, hash_secret(otp), expires_at
        )
        return otp
