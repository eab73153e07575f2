"""SQLAlchemy ORM models for the relational storage backend.

All models are exported from this module for convenient imports:
    from parley.models import UserRow, ChatSessionRow, ...

Models are organized by domain:
- user.py: UserRow, EmailVerificationRow
- api_key.py: ApiKeyRow
- chat.py: ChatSessionRow, MessageRow
"""

from parley.models.api_key import ApiKeyRow
from parley.models.base import Base, CreatedAtMixin, IdMixin
from parley.models.chat import ChatSessionRow, MessageRow
from parley.models.user import EmailVerificationRow, UserRow

__all__ = [
    # Base classes
    "Base",
    "CreatedAtMixin",
    "IdMixin",
    # Identity
    "UserRow",
    "EmailVerificationRow",
    "ApiKeyRow",
    # Conversations
    "ChatSessionRow",
    "MessageRow",
]
