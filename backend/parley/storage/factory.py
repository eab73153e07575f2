"""Storage backend selection.

The backend is chosen once at process start from configuration and never
changes at runtime. Priority: MONGODB_URI, then DATABASE_URL, then the
in-memory fallback.
"""

from enum import Enum

import structlog

from parley.core.config import Settings
from parley.storage.base import Storage
from parley.storage.memory import MemoryStorage
from parley.storage.mongo import MongoStorage
from parley.storage.sql import SqlStorage

logger = structlog.get_logger()


class BackendKind(str, Enum):
    """Concrete persistence technology behind Storage."""

    MONGODB = "mongodb"
    SQL = "sql"
    MEMORY = "memory"


def select_backend(settings: Settings) -> BackendKind:
    """Pick the backend for a configuration. Pure: no connections are made."""
    if settings.mongodb_uri.strip():
        return BackendKind.MONGODB
    if settings.database_url.strip():
        return BackendKind.SQL
    return BackendKind.MEMORY


def create_storage(settings: Settings) -> Storage:
    """Build the storage instance selected by ``select_backend``.

    Connections are opened lazily (or by ``Storage.connect``).
    """
    kind = select_backend(settings)
    storage: Storage
    if kind is BackendKind.MONGODB:
        storage = MongoStorage(settings.mongodb_uri, settings.mongodb_database)
    elif kind is BackendKind.SQL:
        storage = SqlStorage(settings.database_url, echo=settings.database_echo)
    else:
        storage = MemoryStorage()

    logger.info("storage_backend_selected", backend=kind.value)
    return storage
