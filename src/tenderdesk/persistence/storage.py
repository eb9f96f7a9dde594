"""
Durable client storage.

A minimal key/value contract (``read`` / ``write``) standing in for the
browser's local storage. Failures surface as ``StorageUnavailable`` so
callers can fall back to in-memory state.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from sqlalchemy.exc import SQLAlchemyError

from tenderdesk.core.errors import StorageUnavailable

from .db import DEFAULT_DATABASE_URL, get_session, init_db
from .repo import ClientStorageRepository

logger = logging.getLogger(__name__)


class ClientStorage(ABC):
    """Key/value storage that survives restarts."""

    @abstractmethod
    def read(self, key: str) -> str | None:
        """Return the value under ``key``, or None when absent.

        Raises:
            StorageUnavailable: If the storage cannot be read
        """
        pass

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value.

        Raises:
            StorageUnavailable: If the storage cannot be written
        """
        pass


class MemoryClientStorage(ClientStorage):
    """Process-local storage; contents vanish with the process."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})

    def read(self, key: str) -> str | None:
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        self.data[key] = value


class SqlClientStorage(ClientStorage):
    """Client storage in a SQL database (SQLite by default)."""

    def __init__(self, url: str = DEFAULT_DATABASE_URL):
        self.url = url
        self._schema_ready = False

    def _ensure_schema(self) -> None:
        if not self._schema_ready:
            init_db(self.url)
            self._schema_ready = True

    def read(self, key: str) -> str | None:
        try:
            self._ensure_schema()
            with get_session(self.url) as session:
                return ClientStorageRepository(session).get_value(key)
        except (SQLAlchemyError, OSError) as e:
            raise StorageUnavailable(f"Cannot read '{key}' from {self.url}", key=key, cause=e) from e

    def write(self, key: str, value: str) -> None:
        try:
            self._ensure_schema()
            with get_session(self.url) as session:
                ClientStorageRepository(session).put(key, value)
        except (SQLAlchemyError, OSError) as e:
            raise StorageUnavailable(f"Cannot write '{key}' to {self.url}", key=key, cause=e) from e
        logger.debug("Stored %d bytes", len(value), extra={"storage_key": key})
