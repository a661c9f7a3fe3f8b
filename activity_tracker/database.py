"""
Database Module

This module handles database connections, provides session management and
the primary store used for durable writes.
"""
import logging
from contextlib import contextmanager
from typing import Any, Mapping

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from activity_tracker import config
from activity_tracker.errors import InitializationError, TransientStoreError
from activity_tracker.models import Activity, Base

logger = logging.getLogger(__name__)

# Cache for database engines
_engines = {}


def get_engine(database_url):
    """
    Get or create a database engine for the given URL.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Engine instance
    """
    if database_url not in _engines:
        connect_args = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        elif config.DB_SSL:
            connect_args["sslmode"] = "require"
        _engines[database_url] = create_engine(
            database_url,
            echo=config.DB_LOGGING,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
    return _engines[database_url]


def dispose_engine(database_url):
    """Close every pooled connection of a cached engine and forget it."""
    engine = _engines.pop(database_url, None)
    if engine is not None:
        engine.dispose()


@contextmanager
def get_sync_session(engine):
    """
    Session for the given engine, rolled back if the block raises.

    Callers commit explicitly; anything not committed is discarded on close.
    """
    session = sessionmaker(bind=engine, expire_on_commit=False)()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class PrimaryStore:
    """
    Relational store for activity records.

    Supports the full query surface; writes are single-row inserts.
    """

    def __init__(self, database_url: str = config.DATABASE_URL):
        self.database_url = database_url
        self._initialized = False

    @property
    def engine(self):
        return get_engine(self.database_url)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self):
        """Connect and create the schema if needed."""
        try:
            with self.engine.begin() as conn:
                conn.execute(text("SELECT 1"))
                Base.metadata.create_all(bind=conn)
        except (SQLAlchemyError, ImportError, OSError) as e:
            dispose_engine(self.database_url)
            raise InitializationError(f"Cannot connect to primary store: {e}") from e
        self._initialized = True
        logger.info(f"Primary store initialized at {self.engine.url}")

    def save(self, record: Mapping[str, Any]) -> int:
        """
        Insert one record.

        Returns:
            The id assigned by the database

        Raises:
            TransientStoreError: if the insert could not be committed
        """
        if not self._initialized:
            raise TransientStoreError("Primary store is not initialized")
        try:
            with get_sync_session(self.engine) as session:
                activity = Activity(**record)
                session.add(activity)
                session.commit()
                return activity.id
        except SQLAlchemyError as e:
            raise TransientStoreError(str(e)) from e

    def disconnect(self):
        if self._initialized:
            dispose_engine(self.database_url)
            self._initialized = False
            logger.info("Disconnected from primary store")
