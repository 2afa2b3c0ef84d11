"""
Database engine, session factory, and initialization utilities.

Usage:
    from sitio_review.data.database import get_session, init_db

    init_db()  # call once at application startup

    with get_session() as session:
        repo = PendingChangeRepository(session)
        awaiting = repo.get_pending_changes(PendingChangeFilters(status="pending"))
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from sitio_review.config.settings import settings
from sitio_review.data.models import Base

# Module-level engine singleton.
_engine = create_engine(
    f"sqlite:///{settings.db_path}",
    connect_args={"check_same_thread": False},
    echo=settings.db_echo,
)


@event.listens_for(_engine, "connect")
def _configure_sqlite(dbapi_connection, connection_record):
    """Enable WAL mode and enforce foreign key constraints on every connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


_SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)


def init_db() -> None:
    """
    Create all tables if they do not exist.
    Safe to call multiple times (idempotent).
    """
    Base.metadata.create_all(_engine)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager providing a transactional database session.

    Automatically rolls back on exception and always closes the session.

    Usage:
        with get_session() as session:
            session.add(obj)
            session.commit()
    """
    session = _SessionFactory()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
