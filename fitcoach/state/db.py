from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from loguru import logger
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fitcoach.state.models import Base


def create_db_engine(database_url: str) -> Engine:
    """Create an engine for the given URL.

    SQLite connections are shared across threads; an in-memory SQLite
    database is pinned to a single connection so every session sees it.
    """
    is_sqlite = database_url.lower().startswith("sqlite")
    if is_sqlite:
        logger.warning("Using SQLite database (local development only)")
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    return create_engine(database_url, pool_pre_ping=True, pool_recycle=3600)


def create_session_factory(database_url: str, create_tables: bool = True) -> sessionmaker[Session]:
    """Create a session factory, creating tables on first use.

    Args:
        database_url: SQLAlchemy database URL
        create_tables: Whether to run ``create_all`` on the engine

    Returns:
        Configured sessionmaker
    """
    engine = create_db_engine(database_url)
    if create_tables:
        Base.metadata.create_all(engine)
    logger.info("Database session factory initialized", dialect=engine.dialect.name)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@contextmanager
def get_session(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Session context manager: commits on success, rolls back on error, always closes."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        logger.debug("Rolling back database session")
        session.rollback()
        raise
    finally:
        session.close()
