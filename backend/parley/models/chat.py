"""Chat session and message models."""

from sqlalchemy import CheckConstraint, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from parley.models.base import Base, CreatedAtMixin, IdMixin


class ChatSessionRow(Base, IdMixin, CreatedAtMixin):
    """Conversation owned by a user or by an anonymous client token.

    user_id is an indexed reference without a database constraint so a
    user's history can be retained after account deletion.
    """

    __tablename__ = "chat_sessions"
    __table_args__ = (
        CheckConstraint("mode IN ('chat', 'code')", name="ck_chat_sessions_mode"),
    )

    user_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
        index=True,
    )
    anonymous_session_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )
    title: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
    )
    mode: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="chat",
    )


class MessageRow(Base, IdMixin, CreatedAtMixin):
    """Append-only chat message."""

    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint("role IN ('user', 'assistant')", name="ck_messages_role"),
    )

    session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("chat_sessions.id"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
    )
