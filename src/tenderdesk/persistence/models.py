"""
SQLAlchemy ORM models for TenderDesk.

The engine persists exactly one kind of state locally: small string
values under fixed keys (the saved tender set is one such key).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from tenderdesk.core.urgency import utcnow


# =============================================================================
# Base Class
# =============================================================================


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


# =============================================================================
# Client Storage
# =============================================================================


class ClientStorageEntry(Base):
    """One key/value pair of durable client storage."""

    __tablename__ = "client_storage"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ClientStorageEntry(key={self.key!r}, bytes={len(self.value)})>"
