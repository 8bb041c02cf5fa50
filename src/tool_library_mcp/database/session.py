"""
Engine and session handling for the Tool Library MCP Server.

Every MCP handler opens a short ``session_scope()`` of its own. The scope
commits when the block finishes and rolls back on any exception.

SQLite needs two adjustments. Foreign keys are switched on per connection.
Every transaction opens with ``BEGIN IMMEDIATE``, which takes the database
write lock up front, so two checkout batches cannot both read the same
availability and then both insert. Server databases get the same guarantee
from the ``SELECT ... FOR UPDATE`` issued by the checkout ledger.
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import Any, TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .errors import RepositoryException, StorageError
from .schema import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Seconds a SQLite connection waits for another writer to finish
SQLITE_LOCK_TIMEOUT = 5


def configure_sqlite_engine(engine: Engine) -> None:
    """Turn on foreign keys and write-locking transactions for SQLite."""

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_connection, connection_record):  # noqa: ARG001
        # pysqlite must not issue its own BEGIN; the "begin" hook below does
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _engine_options(url: str) -> dict[str, Any]:
    if not url.startswith("sqlite"):
        return {"pool_size": 10, "max_overflow": 20, "pool_pre_ping": True}

    options: dict[str, Any] = {
        "connect_args": {"check_same_thread": False, "timeout": SQLITE_LOCK_TIMEOUT}
    }
    if url in ("sqlite://", "sqlite:///:memory:"):
        # An in-memory database lives only as long as its single connection
        options["poolclass"] = StaticPool
    return options


class DatabaseManager:
    """Owns the engine and session factory for one database URL."""

    def __init__(self, database_url: str | None = None):
        self.database_url = database_url or get_config().get_database_url()
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_engine(self.database_url, **_engine_options(self.database_url))
            if self._engine.dialect.name == "sqlite":
                configure_sqlite_engine(self._engine)
            logger.info("Database engine created: %s", self._engine.url)
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            # Handlers return pydantic models built after commit, so keep
            # loaded attributes readable
            self._session_factory = sessionmaker(
                bind=self.engine, autoflush=False, expire_on_commit=False
            )
        return self._session_factory

    def create_session(self) -> Session:
        """A new session; the caller closes it."""
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Commit on success, roll back on error, always close.

        Domain errors are expected outcomes and are not logged here.
        """
        session = self.create_session()
        try:
            yield session
            session.commit()
        except RepositoryException:
            session.rollback()
            raise
        except Exception:
            logger.exception("Rolling back after unexpected database error")
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        """Create every table, dropping the old ones first if asked."""
        if drop_existing:
            logger.warning("Dropping all tables in %s", self.engine.url)
            Base.metadata.drop_all(bind=self.engine)
        Base.metadata.create_all(bind=self.engine)
        logger.info("Schema ready in %s", self.engine.url)

    def verify_connection(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database connection failed")
            return False
        return True

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


_db_manager: DatabaseManager | None = None


def get_db_manager(database_url: str | None = None) -> DatabaseManager:
    """The process-wide manager; ``database_url`` only matters on the first call."""
    global _db_manager  # noqa: PLW0603

    if _db_manager is None:
        _db_manager = DatabaseManager(database_url)
    return _db_manager


def reset_db_manager() -> None:
    global _db_manager  # noqa: PLW0603

    if _db_manager is not None:
        _db_manager.close()
    _db_manager = None


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """``session_scope`` of the process-wide manager."""
    with get_db_manager().session_scope() as session:
        yield session


def safe_commit(session: Session, operation: str) -> None:
    """
    Commit, or roll back and raise StorageError.

    IntegrityError passes through unchanged so repositories can turn
    constraint violations into DuplicateError or ValidationError.
    """
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Commit failed during %s", operation)
        raise StorageError(f"Could not {operation}: {e!s}") from e


def safe_query(session: Session, query_func: Callable[[Session], T], error_msg: str) -> T:
    """Run ``query_func``, turning database failures into StorageError."""
    try:
        return query_func(session)
    except SQLAlchemyError as e:
        logger.exception("Query failed: %s", error_msg)
        raise StorageError(f"{error_msg}: database query failed") from e
