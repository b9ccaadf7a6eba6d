"""
Database Session Management
Synchronous SQLAlchemy engine and session factory
Source: https://docs.sqlalchemy.org/en/20/orm/session_basics.html
Verified: 2025-12-19
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.models.base import Base
from src.utils.logging import get_logger

logger = get_logger(__name__)


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a database engine.

    Created once at startup and injected into the directories.

    Args:
        database_url: SQLAlchemy URL
        echo: Log SQL statements

    Returns:
        Engine instance
    """
    logger.info(f"Creating database engine: {database_url.split('@')[-1]}")

    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # In-memory SQLite lives in one connection; share it across sessions
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory bound to an engine."""
    return sessionmaker(
        engine,
        expire_on_commit=False,  # Don't expire objects after commit
        autoflush=False,  # Manual flush control
    )


def create_tables(engine: Engine) -> None:
    """Create all tables (tests and local demos; production uses migrations)."""
    import src.models  # noqa: F401  (register models on Base.metadata)

    Base.metadata.create_all(engine)


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Transactional scope around a series of operations.

    Commits on success and rolls back on error.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Database session error: {e}")
        raise
    finally:
        session.close()


def check_db_connection(engine: Engine) -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
