"""Policy Ingest - Database engine and session management.

SQLAlchemy sync engine/session factory. SQLite by default; any SQLAlchemy
URL can be configured through POLICY_INGEST_DATABASE_URL.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import Engine, create_engine, make_url, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from policy_ingest.config import DATABASE_URL, DB_PATH
from policy_ingest.errors import StoreConnectionError
from policy_ingest.models import Base

logger = logging.getLogger(__name__)


def get_database_url(db_path: str | Path | None = None) -> str:
    """Get the database URL.

    Args:
        db_path: Optional SQLite file path. Takes precedence over
            POLICY_INGEST_DATABASE_URL and config.DB_PATH.

    Returns:
        SQLAlchemy connection URL string.
    """
    if db_path is not None:
        return f"sqlite:///{db_path}"
    if DATABASE_URL:
        return DATABASE_URL
    return f"sqlite:///{DB_PATH}"


def create_db_engine(db_path: str | Path | None = None, echo: bool = False) -> Engine:
    """Create SQLAlchemy engine.

    Args:
        db_path: Optional path override for the database file.
        echo: If True, log all SQL statements.

    Returns:
        SQLAlchemy Engine instance.
    """
    url = get_database_url(db_path)
    connect_args = {}
    if url.startswith("sqlite"):
        # One session per unit of work, never shared across threads.
        connect_args["check_same_thread"] = False
        _ensure_sqlite_parent(url)
    return create_engine(url, echo=echo, connect_args=connect_args)


def _ensure_sqlite_parent(url: str) -> None:
    """Create the directory holding a SQLite database file, if missing."""
    database = make_url(url).database
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the given engine.

    Args:
        engine: SQLAlchemy Engine instance.

    Returns:
        Configured sessionmaker.
    """
    # - autoflush=False: upserts are explicit statements, nothing to autoflush
    # - expire_on_commit=False: objects remain usable after a row commit
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(db_path: str | Path | None = None, echo: bool = False) -> tuple[Engine, sessionmaker]:
    """Initialize the database: create engine, session factory, and all tables.

    This is idempotent - safe to call multiple times.

    Args:
        db_path: Optional path override for the database file.
        echo: If True, log all SQL statements.

    Returns:
        Tuple of (engine, SessionFactory).
    """
    engine = create_db_engine(db_path, echo=echo)
    SessionFactory = create_session_factory(engine)

    # Create all tables (idempotent via checkfirst=True default)
    Base.metadata.create_all(engine)

    return engine, SessionFactory


@contextmanager
def job_store(db_path: str | Path | None = None) -> Iterator[Session]:
    """Acquire the store for exactly one ingestion job.

    Verifies connectivity, ensures the schema exists and yields a single
    session. The session is closed and the engine disposed on exit, whether
    the job finished, failed, or was torn down (SystemExit).

    Args:
        db_path: Optional path override for the database file.

    Yields:
        The job's Session.

    Raises:
        StoreConnectionError: If the store cannot be reached or initialized.
    """
    engine = None
    try:
        engine = create_db_engine(db_path)
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        Base.metadata.create_all(engine)
    except (SQLAlchemyError, OSError) as e:
        if engine is not None:
            engine.dispose()
        raise StoreConnectionError(str(e)) from e

    logger.info("Connected to database: %s", engine.url.render_as_string(hide_password=True))
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
        logger.debug("Database connection released")
