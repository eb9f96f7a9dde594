"""Persistence layer - durable client storage on SQLAlchemy."""

from .db import DEFAULT_DATABASE_URL, dispose_engines, get_engine, get_session, init_db
from .models import Base, ClientStorageEntry
from .repo import ClientStorageRepository
from .storage import ClientStorage, MemoryClientStorage, SqlClientStorage

__all__ = [
    "DEFAULT_DATABASE_URL",
    "dispose_engines",
    "get_engine",
    "get_session",
    "init_db",
    "Base",
    "ClientStorageEntry",
    "ClientStorageRepository",
    "ClientStorage",
    "MemoryClientStorage",
    "SqlClientStorage",
]
