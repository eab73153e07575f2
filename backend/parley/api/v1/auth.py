"""Account endpoints: signup, email verification, login, logout, me.

Security considerations:
- login: constant-time failure path via DUMMY_HASH prevents user enumeration
- signup: bcrypt hashing, email uniqueness, optional OTP verification
- every credential failure returns the same generic message
"""

from fastapi import APIRouter, BackgroundTasks, Request, Response

from parley.api.deps import CurrentPrincipal, SessionUser, StorageDep
from parley.core.auth import (
    clear_session_cookie,
    create_session_token,
    set_session_cookie,
)
from parley.core.config import settings
from parley.core.email import send_otp_email
from parley.core.rate_limiting import limiter
from parley.core.responses import DataResponse
from parley.schemas.auth import (
    LoginRequest,
    MeResponse,
    ResendOtpRequest,
    SignupRequest,
    SignupResponse,
    UserResponse,
    VerifyOtpRequest,
)
from parley.services.accounts import AccountService
from parley.storage.records import User

router = APIRouter()


def _start_session(response: Response, user: User) -> None:
    token = create_session_token(user_id=user.id, email=user.email)
    set_session_cookie(response, token)


# ===================================================================
# POST /auth/signup
# ===================================================================


@router.post("/signup", status_code=201)
@limiter.limit(settings.rate_limit_auth)
async def signup(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: SignupRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    storage: StorageDep,
) -> DataResponse[SignupResponse]:
    """Register a new account.

    With email verification enabled, a 6-digit code is emailed and the
    account stays unverified until /verify-otp. Otherwise the account is
    verified immediately and a session cookie is issued.
    """
    result = await AccountService(storage).signup(body.email, body.password)

    if result.otp is not None:
        background_tasks.add_task(
            send_otp_email, to_email=result.user.email, otp=result.otp
        )
    else:
        _start_session(response, result.user)

    return DataResponse(
        data=SignupResponse(
            user=UserResponse.from_record(result.user),
            verification_required=result.otp is not None,
        )
    )


# ===================================================================
# POST /auth/verify-otp, /auth/resend-otp
# ===================================================================


@router.post("/verify-otp")
@limiter.limit(settings.rate_limit_auth)
async def verify_otp(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: VerifyOtpRequest,
    response: Response,
    storage: StorageDep,
) -> DataResponse[UserResponse]:
    """Confirm an email address with its one-time code and sign in."""
    user = await AccountService(storage).verify_otp(body.email, body.otp)
    _start_session(response, user)
    return DataResponse(data=UserResponse.from_record(user))


@router.post("/resend-otp")
@limiter.limit(settings.rate_limit_auth)
async def resend_otp(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: ResendOtpRequest,
    background_tasks: BackgroundTasks,
    storage: StorageDep,
) -> DataResponse[dict]:
    """Email a fresh verification code."""
    user, otp = await AccountService(storage).resend_otp(body.email)
    background_tasks.add_task(send_otp_email, to_email=user.email, otp=otp)
    return DataResponse(data={"message": "Verification code sent"})


# ===================================================================
# POST /auth/login, /auth/logout
# ===================================================================


@router.post("/login")
@limiter.limit(settings.rate_limit_auth)
async def login(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: LoginRequest,
    response: Response,
    storage: StorageDep,
) -> DataResponse[UserResponse]:
    """Check email + password and issue the session cookie.

    Anonymous chat history is not attached to the account; it stays bound
    to its device token.
    """
    user = await AccountService(storage).login(body.email, body.password)
    _start_session(response, user)
    return DataResponse(data=UserResponse.from_record(user))


@router.post("/logout")
async def logout(response: Response) -> DataResponse[dict]:
    """Clear the session cookie. Succeeds even without a session."""
    clear_session_cookie(response)
    return DataResponse(data={"message": "Logged out"})


# ===================================================================
# GET /auth/me, DELETE /auth/me
# ===================================================================


@router.get("/me")
async def get_me(principal: CurrentPrincipal) -> DataResponse[MeResponse]:
    """Return the caller's identity (session cookie or API key)."""
    return DataResponse(
        data=MeResponse(
            id=principal.user_id,
            email=principal.email,
            auth_method=principal.auth_method.value,
        )
    )


@router.delete("/me")
async def delete_me(
    principal: SessionUser,
    response: Response,
    storage: StorageDep,
) -> DataResponse[dict]:
    """Delete the signed-in account and end the session."""
    await AccountService(storage).delete_account(principal.user_id)
    clear_session_cookie(response)
    return DataResponse(data={"id": principal.user_id, "deleted": True})
