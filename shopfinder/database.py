"""
Database configuration and session management for the shop finder.

Uses SQLAlchemy ORM; SQLite by default, any SQLAlchemy URL via DATABASE_URL.
"""

import os
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from shopfinder.config import DEFAULT_APP_CONFIG

# Base class for declarative models
Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    """ON DELETE CASCADE is only honoured by SQLite with this pragma."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(url: str, echo: bool = False, **kwargs) -> Engine:
    """Create an engine, applying the SQLite threading flag when needed."""
    connect_args = kwargs.pop("connect_args", {})
    if url.startswith("sqlite"):
        connect_args.setdefault("check_same_thread", False)
    new_engine = create_engine(url, echo=echo, connect_args=connect_args, **kwargs)
    if url.startswith("sqlite"):
        event.listen(new_engine, "connect", _enable_sqlite_foreign_keys)
    return new_engine


engine = make_engine(DEFAULT_APP_CONFIG.database_url, echo=DEFAULT_APP_CONFIG.database_echo)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def _ensure_sqlite_directory(bind: Engine) -> None:
    """A file-backed SQLite database needs its parent directory to exist."""
    if bind.url.get_backend_name() != "sqlite":
        return
    db_dir = os.path.dirname(bind.url.database or "")
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)


def init_db(bind: Engine = engine) -> None:
    """
    Initialize database by creating all tables.
    """
    _ensure_sqlite_directory(bind)
    # Import tables to ensure they're registered
    from shopfinder.storage import tables  # noqa: F401

    Base.metadata.create_all(bind=bind)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session.
    Use in FastAPI route dependencies.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Iterator[Session]:
    """
    Context manager for database session.
    Use for non-FastAPI contexts (imports, scripts).
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
