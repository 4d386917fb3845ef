"""
Database connection management.

Supports:
  - SQLite (local dev, no setup; ":memory:" for tests)
  - PostgreSQL (or any SQLAlchemy URL)

Connection string comes from Settings.database_url (DATABASE_URL env var).
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.config.settings import get_settings
from src.infrastructure.db.models import Base

logger = logging.getLogger(__name__)


def create_db_engine(url: str | None = None) -> Engine:
    """Create SQLAlchemy engine."""
    db_url = url or get_settings().database_url

    if db_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}, "echo": False}
        if ":memory:" in db_url or db_url in ("sqlite://", "sqlite:///"):
            # Uma única conexão compartilhada, senão cada sessão vê um banco vazio
            kwargs["poolclass"] = StaticPool
        return create_engine(db_url, **kwargs)

    return create_engine(
        db_url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        echo=False,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables. Safe to call multiple times."""
    Base.metadata.create_all(engine)
    url = engine.url.render_as_string(hide_password=True)
    logger.info(f"Database initialized: {url.split('@')[-1]}")


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
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
