"""
Repository for client storage rows.
"""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .models import ClientStorageEntry


class ClientStorageRepository:
    """Repository for ClientStorageEntry CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, key: str) -> ClientStorageEntry | None:
        """Get an entry by key."""
        return self.session.get(ClientStorageEntry, key)

    def get_value(self, key: str) -> str | None:
        entry = self.get(key)
        return entry.value if entry else None

    def put(self, key: str, value: str) -> ClientStorageEntry:
        """Create or replace the value stored under ``key``."""
        entry = self.get(key)
        if entry is None:
            entry = ClientStorageEntry(key=key, value=value)
            self.session.add(entry)
        else:
            entry.value = value
        self.session.flush()
        return entry

    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if a row was deleted."""
        result = self.session.execute(delete(ClientStorageEntry).where(ClientStorageEntry.key == key))
        return bool(result.rowcount)

    def keys(self, prefix: str | None = None) -> Sequence[str]:
        """List stored keys, optionally restricted to a prefix."""
        stmt = select(ClientStorageEntry.key)
        if prefix:
            stmt = stmt.where(ClientStorageEntry.key.startswith(prefix))
        stmt = stmt.order_by(ClientStorageEntry.key)
        return self.session.execute(stmt).scalars().all()
