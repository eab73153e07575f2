"""API key model - bearer credentials for programmatic access."""

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from parley.models.base import Base, CreatedAtMixin, IdMixin


class ApiKeyRow(Base, IdMixin, CreatedAtMixin):
    """Hashed API key.

    user_id is an indexed reference without a database constraint: keys
    outlive their user unless account deletion purges owned data, and
    authentication rejects such dangling keys.

    Attributes:
        user_id: Owner of the key.
        name: Caller-chosen label.
        key_hash: bcrypt hash of the raw key.
        key_prefix: Display fragment of the raw key.
        lookup_digest: SHA-256 of the raw key (index only).
        last_used_at: Last successful authentication.
    """

    __tablename__ = "api_keys"

    user_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    key_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    key_prefix: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    lookup_digest: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        unique=True,
    )
    last_used_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
