"""
Database Configuration and Session Management

SQLAlchemy engine, session factory and the transaction boundary used by
every state-changing operation.

The database is the only place where concurrent requests are serialized.
On PostgreSQL the quota enforcer takes row locks on the tenant; on SQLite
every transaction is opened with BEGIN IMMEDIATE so that writers queue up
behind each other instead of interleaving their count and insert.
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.pool import QueuePool
from taskboard.config import get_settings
import logging

logger = logging.getLogger(__name__)

settings = get_settings()

# Base class for all models
Base = declarative_base()


def _configure_sqlite(engine: Engine) -> None:
    """
    Make pysqlite honour foreign keys and real transactions.

    pysqlite defers BEGIN until the first DML statement, which lets two
    connections read the same count before either writes. Taking over
    transaction control and emitting BEGIN IMMEDIATE closes that gap.
    """

    @event.listens_for(engine, "connect")
    def _sqlite_on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _sqlite_on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Build an engine for the given URL with backend-specific setup."""
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=echo,
        )
        _configure_sqlite(engine)
        return engine

    engine = create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,  # Verify connections before using
        echo=echo,
    )

    @event.listens_for(engine, "connect")
    def _set_utc(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("SET TIME ZONE 'UTC'")
        cursor.close()
        logger.debug("New database connection established")

    return engine


engine = create_db_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# expire_on_commit=False lets handlers serialize ORM objects after commit
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)


def get_db() -> Iterator[Session]:
    """
    Dependency function that provides a database session.

    Closing the session rolls back whatever transaction is still open,
    so an aborted request never leaves partial writes behind.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Run a block as one unit of work.

    Commits when the block finishes and rolls back on any exception,
    including errors raised by the quota enforcer or the policy layer.
    Mutations and their audit entries must be written inside the same
    block.
    """
    try:
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise


def init_db(bind: Engine = None) -> None:
    """
    Create database tables.

    Used in development and tests. Production schemas are managed by
    migrations outside this service.
    """
    # Import models so that they register on Base.metadata
    import taskboard.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
