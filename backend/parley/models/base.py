"""SQLAlchemy base classes and common mixins.

Defines the declarative base and the id/creation-timestamp columns shared
by every relational table.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class IdMixin:
    """Mixin that adds a string UUID primary key.

    Ids are generated client-side so the same schema works on PostgreSQL
    and SQLite.
    """

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=_new_id,
    )


class CreatedAtMixin:
    """Mixin that adds a created_at column.

    Attributes:
        created_at: Set on insert from the application clock. Sub-second
            precision keeps createdAt ordering stable on every database.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
