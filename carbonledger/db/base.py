"""
Database base configuration for carbonledger
"""

import logging
import os
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from carbonledger.config import get_config

logger = logging.getLogger(__name__)

# Create declarative base
Base = declarative_base()

# Global engine and session factory
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def get_database_url() -> str:
    """
    Get database URL from environment or configuration

    Returns:
        Database connection URL
    """
    return os.getenv("CARBONLEDGER_DATABASE_URL") or get_config().database_url


def build_engine(database_url: str, **kwargs) -> Engine:
    """
    Create a new SQLAlchemy engine for ``database_url``

    SQLite engines enable foreign keys on every connection; in-memory
    SQLite shares one connection so every session sees the same tables.

    Args:
        database_url: SQLAlchemy connection URL
        **kwargs: Additional engine arguments

    Returns:
        SQLAlchemy engine
    """
    if database_url.startswith("sqlite"):
        engine_kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            engine_kwargs["poolclass"] = StaticPool
        engine_kwargs.update(kwargs)
        engine = create_engine(database_url, **engine_kwargs)

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    engine_kwargs = {
        "poolclass": QueuePool,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }
    engine_kwargs.update(kwargs)
    return create_engine(database_url, **engine_kwargs)


def get_engine(database_url: Optional[str] = None, **kwargs) -> Engine:
    """
    Get or create the process-wide SQLAlchemy engine

    Args:
        database_url: Database connection URL (optional)
        **kwargs: Additional engine arguments

    Returns:
        SQLAlchemy engine
    """
    global _engine

    if _engine is None:
        url = database_url or get_database_url()
        _engine = build_engine(url, **kwargs)
        logger.info("Database engine created for %s", _engine.url.render_as_string(hide_password=True))

    return _engine


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """
    Get or create session factory

    Args:
        engine: SQLAlchemy engine (optional)

    Returns:
        Session factory
    """
    global _SessionLocal

    if _SessionLocal is None:
        if engine is None:
            engine = get_engine()
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    return _SessionLocal


@contextmanager
def get_session(engine: Optional[Engine] = None) -> Generator[Session, None, None]:
    """
    Get database session context manager

    Args:
        engine: SQLAlchemy engine (optional)

    Yields:
        Database session
    """
    SessionLocal = get_session_factory(engine)
    session = SessionLocal()

    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Optional[Engine] = None, drop_all: bool = False):
    """
    Initialize database tables

    Args:
        engine: SQLAlchemy engine (optional)
        drop_all: Drop all tables before creating (default: False)
    """
    # Register the ORM tables on Base.metadata
    from carbonledger.db import models  # noqa: F401

    if engine is None:
        engine = get_engine()

    if drop_all:
        logger.warning("Dropping all carbonledger tables")
        Base.metadata.drop_all(bind=engine)

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized")


def reset_engine():
    """Reset global engine and session factory (for testing)"""
    global _engine, _SessionLocal

    if _engine:
        _engine.dispose()

    _engine = None
    _SessionLocal = None
