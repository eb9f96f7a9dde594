"""
Database connection and session management.

Engines are cached per URL so that storage objects pointing at the same
database share a connection pool.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

DEFAULT_DATABASE_URL = "sqlite:///data/tenderdesk.db"


# =============================================================================
# Engine Cache
# =============================================================================

_engines: dict[str, Engine] = {}
_session_factories: dict[str, sessionmaker[Session]] = {}


# =============================================================================
# SQLite Configuration
# =============================================================================


def _configure_sqlite(engine: Engine) -> None:
    """Configure SQLite for durability.

    Enables:
    - WAL mode so readers never block the writer
    - Synchronous mode for durability
    """
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


# =============================================================================
# Engine Creation
# =============================================================================


def get_engine(url: str = DEFAULT_DATABASE_URL, echo: bool = False) -> Engine:
    """Get or create the database engine for ``url``.

    Args:
        url: SQLAlchemy database URL
        echo: Whether to log SQL statements

    Returns:
        SQLAlchemy Engine instance
    """
    if url in _engines:
        return _engines[url]

    if _is_memory_sqlite(url):
        # One shared connection, otherwise every checkout sees an empty database
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    elif url.startswith("sqlite"):
        db_path = url.replace("sqlite:///", "", 1)
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )
        _configure_sqlite(engine)
    else:
        engine = create_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
        )

    _engines[url] = engine
    _session_factories[url] = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    return engine


# =============================================================================
# Session Management
# =============================================================================


@contextmanager
def get_session(url: str = DEFAULT_DATABASE_URL) -> Generator[Session, None, None]:
    """Get a database session that commits on success.

    Usage:
        with get_session(url) as session:
            session.get(...)

    Yields:
        SQLAlchemy Session instance
    """
    if url not in _session_factories:
        get_engine(url)

    session = _session_factories[url]()

    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================================
# Database Initialization
# =============================================================================


def init_db(url: str = DEFAULT_DATABASE_URL, echo: bool = False) -> None:
    """Create all tables if they don't exist.

    Args:
        url: Database URL
        echo: Whether to log SQL
    """
    engine = get_engine(url, echo=echo)
    Base.metadata.create_all(bind=engine)


def drop_db(url: str = DEFAULT_DATABASE_URL) -> None:
    """Drop all tables. WARNING: deletes all saved state."""
    engine = get_engine(url)
    Base.metadata.drop_all(bind=engine)


# =============================================================================
# Cleanup
# =============================================================================


def dispose_engines() -> None:
    """Dispose of all cached engines.

    Should be called on application shutdown.
    """
    for engine in _engines.values():
        engine.dispose()
    _engines.clear()
    _session_factories.clear()
