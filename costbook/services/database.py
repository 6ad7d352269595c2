"""
Database connection and session management for Costbook.

This module provides:
- Database engine creation and configuration
- The Database handle passed explicitly to every service operation
- Transactional session scopes for reads
- A retryable unit of work for writes guarded by optimistic concurrency
- Database initialization (create tables)
- WAL mode configuration and foreign key enforcement
"""

import logging
import time
from contextlib import contextmanager
from typing import Callable, Optional, TypeVar

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from costbook.models.base import Base
from costbook.utils.config import Config, get_config

from .exceptions import DatabaseError, ServiceError, TransientError
from .logging_utils import log_operation

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLite reports writer contention through OperationalError messages
_LOCK_MESSAGES = ("database is locked", "database table is locked")
_UNIQUE_MESSAGE = "UNIQUE constraint failed:"


def _set_sqlite_pragma(dbapi_connection, connection_record):
    """
    Set SQLite pragmas on connection.

    This event listener is called for every new database connection.
    It enables foreign key constraints and sets WAL mode.
    """
    cursor = dbapi_connection.cursor()

    # Enable foreign key constraints (critical for referential integrity)
    cursor.execute("PRAGMA foreign_keys=ON")

    # WAL lets readers proceed while a finalization holds the write lock
    cursor.execute("PRAGMA journal_mode=WAL")

    cursor.execute("PRAGMA synchronous=NORMAL")

    cursor.close()


def create_database_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create and configure a database engine.

    Args:
        database_url: SQLAlchemy database URL
        echo: If True, log all SQL statements (useful for debugging)

    Returns:
        Configured SQLAlchemy Engine
    """
    logger.info(f"Creating database engine: {database_url}")

    if ":memory:" in database_url or "mode=memory" in database_url:
        # For in-memory databases (testing), use StaticPool
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        # For file-based databases
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    event.listen(engine, "connect", _set_sqlite_pragma)
    return engine


def is_lock_error(error: OperationalError) -> bool:
    """True when an OperationalError reports SQLite writer contention."""
    message = str(getattr(error, "orig", error)).lower()
    return any(text in message for text in _LOCK_MESSAGES)


def is_unique_violation(error: IntegrityError, column: str) -> bool:
    """
    True when an IntegrityError reports a duplicate value in ``column``.

    Args:
        error: The error raised by a flush or commit
        column: Qualified column name as SQLite reports it (e.g., "weeks.id")
    """
    message = str(getattr(error, "orig", error))
    if _UNIQUE_MESSAGE not in message:
        return False
    columns = message.split(_UNIQUE_MESSAGE, 1)[1].split(",")
    return column in (name.strip() for name in columns)


class Database:
    """
    Handle on one SQLite store.

    Owns an engine and a session factory. Services take a Database as their
    first argument instead of reaching for a module-level engine, so tests
    and callers can run any number of independent stores side by side.

    Example:
        db = Database("sqlite:///:memory:")
        db.init_database()
        with db.session_scope() as session:
            session.query(Week).count()
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        config: Optional[Config] = None,
        echo: bool = False,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
    ):
        """
        Create a handle.

        Args:
            database_url: Database URL. If None, uses the config's URL.
            config: Configuration supplying defaults. If None, uses get_config().
            echo: If True, log all SQL statements
            max_attempts: Override for config.transaction_max_attempts
            backoff_seconds: Override for config.transaction_backoff_seconds
        """
        self.config = config if config is not None else get_config()
        self.database_url = database_url or self.config.database_url
        self.max_attempts = max(
            1, max_attempts if max_attempts is not None else self.config.transaction_max_attempts
        )
        self.backoff_seconds = (
            backoff_seconds
            if backoff_seconds is not None
            else self.config.transaction_backoff_seconds
        )
        self.engine = create_database_engine(self.database_url, echo=echo)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def __repr__(self) -> str:
        return f"Database(url='{self.database_url}', max_attempts={self.max_attempts})"

    def init_database(self) -> None:
        """
        Create all tables that don't exist yet.

        Safe to call multiple times - existing tables won't be recreated.
        """
        logger.info("Initializing database tables")

        # Import all models to ensure they're registered with Base
        from costbook import models  # noqa: F401

        Base.metadata.create_all(self.engine)

        logger.info("Database tables initialized successfully")

    def verify_database(self) -> bool:
        """
        Verify that the database is accessible and has tables.

        Returns:
            True if database is valid, False otherwise
        """
        try:
            tables = inspect(self.engine).get_table_names()
        except SQLAlchemyError as e:
            logger.error(f"Database verification failed: {e}")
            return False
        expected_tables = ["ingredients", "weeks"]
        return all(table in tables for table in expected_tables)

    def reset_database(self, confirm: bool = False) -> None:
        """
        Drop all tables and recreate the database.

        WARNING: This will delete all data!

        Args:
            confirm: Must be True to actually reset. Safety check.

        Raises:
            ValueError: If confirm is not True
        """
        if not confirm:
            raise ValueError("Must pass confirm=True to reset database. This will delete all data!")

        logger.warning("RESETTING DATABASE - ALL DATA WILL BE LOST")

        from costbook import models  # noqa: F401

        Base.metadata.drop_all(self.engine)
        logger.info("All tables dropped")

        Base.metadata.create_all(self.engine)
        logger.info("Tables recreated")

    def get_session(self) -> Session:
        """
        Create a new database session.

        Returns:
            New Session instance
        """
        return self._session_factory()

    @contextmanager
    def session_scope(self):
        """
        Provide a transactional scope for database operations.

        This context manager handles session lifecycle automatically:
        - Creates a new session
        - Commits on success
        - Rolls back on exception
        - Always closes the session

        Use it for reads and for writes that cannot race. Writes guarded by
        optimistic concurrency go through run_in_transaction instead.

        Yields:
            Database session
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def run_in_transaction(
        self, work: Callable[[Session], T], operation: str = "transaction"
    ) -> T:
        """
        Run ``work(session)`` as one all-or-nothing unit of work.

        Each attempt gets a fresh session. On success the session commits and
        the work's return value is returned. When the commit loses an
        optimistic-concurrency race (StaleDataError) or SQLite reports the
        database locked, the attempt is rolled back and the whole unit of
        work runs again from the top, after a short linear backoff.

        ``work`` must not cause side effects outside the session: it can run
        more than once, and only the final attempt is committed.

        Args:
            work: Callable receiving the session and returning a result
            operation: Name used in log records and errors

        Returns:
            Whatever ``work`` returned on the committed attempt

        Raises:
            ServiceError: Domain errors raised by ``work``; never retried
            TransientError: Every attempt lost a concurrency race
            DatabaseError: Any other SQLAlchemy failure
        """
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            session = self.get_session()
            try:
                result = work(session)
                session.commit()
                return result
            except ServiceError:
                session.rollback()
                raise
            except StaleDataError as e:
                session.rollback()
                last_error = e
            except OperationalError as e:
                session.rollback()
                if not is_lock_error(e):
                    raise DatabaseError(f"{operation} failed: {e}", original_error=e) from e
                last_error = e
            except SQLAlchemyError as e:
                session.rollback()
                raise DatabaseError(f"{operation} failed: {e}", original_error=e) from e
            finally:
                session.close()

            log_operation(
                logger,
                operation=operation,
                outcome="retry",
                level=logging.WARNING,
                attempt=attempt,
                max_attempts=self.max_attempts,
                error=str(last_error),
            )
            if attempt < self.max_attempts and self.backoff_seconds > 0:
                time.sleep(self.backoff_seconds * attempt)

        log_operation(
            logger,
            operation=operation,
            outcome="retries_exhausted",
            level=logging.ERROR,
            attempts=self.max_attempts,
            error=str(last_error),
        )
        raise TransientError(operation, self.max_attempts, last_error)

    def close(self) -> None:
        """
        Close all database connections.

        Useful for cleanup or before application exit.
        """
        self.engine.dispose()
        logger.info("Database connections closed")


def initialize_app_database(config: Optional[Config] = None) -> Database:
    """
    Open the application database described by the configuration.

    This is the main entry point for setting up the database when the app
    starts. It will create the database file and tables if they don't exist.

    Args:
        config: Configuration to use. If None, uses get_config().

    Returns:
        Ready-to-use Database handle
    """
    config = config if config is not None else get_config()
    config.ensure_directories()

    if not config.database_exists():
        logger.info(f"Creating new database at: {config.database_path}")
    else:
        logger.info(f"Using existing database at: {config.database_path}")

    db = Database(config=config)
    db.init_database()

    if db.verify_database():
        logger.info("Database initialized and verified successfully")
    else:
        logger.warning("Database verification failed - tables may not exist")

    return db
