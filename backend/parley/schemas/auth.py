"""Auth API request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from parley.storage.records import User


class SignupRequest(BaseModel):
    """Request body for POST /auth/signup."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class VerifyOtpRequest(BaseModel):
    """Request body for POST /auth/verify-otp."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    otp: str = Field(pattern=r"^\d{6}$")


class ResendOtpRequest(BaseModel):
    """Request body for POST /auth/resend-otp."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class UserResponse(BaseModel):
    """Public view of an account. Never includes the password hash."""

    id: str
    email: str
    is_verified: bool
    created_at: datetime

    @classmethod
    def from_record(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            is_verified=user.is_verified,
            created_at=user.created_at,
        )


class SignupResponse(BaseModel):
    """Result of a signup.

    Attributes:
        user: The new account.
        verification_required: True when a code was emailed and must be
            confirmed via /auth/verify-otp before login.
    """

    user: UserResponse
    verification_required: bool


class MeResponse(BaseModel):
    """Identity of the current caller."""

    id: str
    email: str
    auth_method: str
