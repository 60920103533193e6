"""
Database connection management.

Supports:
  - SQLite (local dev, no setup; `sqlite://` for an in-memory database)
  - PostgreSQL (Docker / managed)

Connection string comes from the DATABASE_URL setting.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.config.settings import get_settings
from src.infrastructure.db.models import Base

logger = logging.getLogger(__name__)


def get_database_url() -> str:
    """Get database URL from settings."""
    return get_settings().database_url


def create_db_engine(url: str = None) -> Engine:
    """Create SQLAlchemy engine."""
    db_url = url or get_database_url()

    if db_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every session sees an empty database
        engine = create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )
    elif db_url.startswith("sqlite"):
        engine = create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            echo=False,
        )
    else:
        # PostgreSQL
        engine = create_engine(
            db_url,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            echo=False,
        )

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables. Safe to call multiple times."""
    Base.metadata.create_all(engine)
    url = engine.url.render_as_string(hide_password=True)
    logger.info(f"Database initialized: {url.split('@')[-1] if '@' in url else url}")


@contextmanager
def session_scope(factory: sessionmaker) -> Session:
    """Context manager for database sessions: commit on success, rollback on error."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
