"""
Database initialization and session management for checkpoint state.

Engines are created per checkpoint store rather than held globally, so a
process (or a test) can open several state databases side by side.
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine, pool
from sqlalchemy.orm import Session, sessionmaker

from appwrite_migration.client.exceptions import ConfigurationError, StateError
from appwrite_migration.migration.models import Base
from appwrite_migration.utils.logging import get_logger

logger = get_logger(__name__)


def create_database_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine with appropriate settings.

    Args:
        database_url: Database connection URL (sqlite:/// or postgresql://)
        echo: Whether to log SQL statements

    Returns:
        SQLAlchemy Engine instance

    Raises:
        ConfigurationError: If database URL is invalid
    """
    if not database_url:
        raise ConfigurationError("Database URL cannot be empty")

    try:
        is_sqlite = database_url.startswith("sqlite")

        if is_sqlite:
            # NullPool: connections are not shared across event loop threads
            engine = create_engine(
                database_url,
                echo=echo,
                poolclass=pool.NullPool,
                connect_args={"check_same_thread": False},
            )
        else:
            engine = create_engine(database_url, echo=echo, pool_pre_ping=True)

        logger.debug(
            "Database engine created",
            database_type="sqlite" if is_sqlite else database_url.split(":", 1)[0],
        )
        return engine

    except Exception as e:
        logger.error("Failed to create database engine", error=str(e))
        raise ConfigurationError(f"Failed to create database engine: {e}") from e


def init_database(database_url: str, echo: bool = False) -> sessionmaker:
    """
    Initialize the checkpoint database.

    Creates all tables if they don't exist. This is idempotent and safe
    to call multiple times.

    Args:
        database_url: Database connection URL
        echo: Whether to log SQL statements

    Returns:
        Session factory bound to the new engine

    Raises:
        ConfigurationError: If database initialization fails
    """
    engine = create_database_engine(database_url, echo=echo)

    try:
        Base.metadata.create_all(engine)
    except Exception as e:
        logger.error("Failed to initialize database", error=str(e), database_url=database_url)
        raise ConfigurationError(f"Failed to initialize database: {e}") from e

    logger.debug("Database initialized", database_url=database_url)
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically commits on success and rolls back on exception.
    Always closes the session when done.

    Args:
        session_factory: Factory returned by init_database()

    Yields:
        SQLAlchemy Session instance

    Raises:
        StateError: If database operation fails
    """
    session = session_factory()

    try:
        yield session
        session.commit()

    except Exception as e:
        session.rollback()
        logger.error("Database session rolled back due to error", error=str(e))
        raise StateError(f"Database operation failed: {e}") from e

    finally:
        session.close()
