"""
Shared database connection module for CoinView.
Uses SQLAlchemy; SQLite by default, any SQLAlchemy URL is accepted.
CRITICAL: Includes error handling and transaction management.
"""
import logging
from contextlib import contextmanager
from typing import Callable, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .config import settings

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL and make sure the schema exists.
    In-memory SQLite URLs share one connection so every session sees the same data.
    """
    kwargs = {"echo": settings.DEBUG, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)

    # Register models on Base before creating tables
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    return engine


def get_engine() -> Engine:
    """Get (and lazily create) the process engine."""
    global _engine
    if _engine is None:
        try:
            _engine = create_db_engine(settings.DATABASE_URL)
            logger.info("Database engine created")
        except SQLAlchemyError as e:
            logger.critical(f"Failed to create database engine: {e}", exc_info=True)
            raise
    return _engine


def get_session_factory() -> sessionmaker:
    """Get session factory bound to the process engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _session_factory


@contextmanager
def get_db_context(session_factory: Optional[Callable[[], Session]] = None):
    """
    Context manager for database sessions.
    CRITICAL: Use this for manual transaction management.

    Usage:
        with get_db_context() as db:
            # Database operations
            db.commit()
    """
    factory = session_factory or get_session_factory()
    db = factory()
    try:
        yield db
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error in context: {e}", exc_info=True)
        raise
    finally:
        db.close()
