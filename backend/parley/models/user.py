"""User and EmailVerification models - authentication foundation."""

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, String, text
from sqlalchemy.orm import Mapped, mapped_column

from parley.models.base import Base, CreatedAtMixin, IdMixin


class UserRow(Base, IdMixin, CreatedAtMixin):
    """User account for authentication.

    Attributes:
        id: UUID primary key.
        email: Unique email address.
        password_hash: bcrypt hash.
        is_verified: Whether the email address has been confirmed.
        created_at: Account creation timestamp.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )


class EmailVerificationRow(Base, IdMixin, CreatedAtMixin):
    """One-time email verification code (stored hashed).

    Rows are deleted together with their user.
    """

    __tablename__ = "email_verifications"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    otp_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )
    is_used: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
