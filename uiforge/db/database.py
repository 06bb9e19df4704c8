from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger
from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_settings
from uiforge.db.models.base import Base

_default_factory: sessionmaker[Session] | None = None


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.

    SQLite file databases get their parent directory created. In-memory SQLite
    shares a single connection so every session sees the same tables.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        database = url.database
        if not database or database == ":memory:":
            return create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        return create_engine(database_url, echo=echo, connect_args={"check_same_thread": False})

    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def init_db(engine: Engine) -> None:
    """Initialize database tables. Safe to call repeatedly."""
    Base.metadata.create_all(bind=engine)
    logger.debug("Learning loop tables initialized")


def create_session_factory(database_url: str, echo: bool = False) -> sessionmaker[Session]:
    """Build an initialized session factory bound to a fresh engine."""
    engine = create_db_engine(database_url, echo=echo)
    init_db(engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_session_factory() -> sessionmaker[Session]:
    """Get or create the process-wide session factory from settings (lazy initialization)."""
    global _default_factory
    if _default_factory is None:
        settings = get_settings()
        _default_factory = create_session_factory(settings.database_url, echo=settings.database_echo)
        logger.info(f"Database ready: {make_url(settings.database_url).render_as_string(hide_password=True)}")
    return _default_factory


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:  # Intentionally broad - rollback on any error before re-raising
        session.rollback()
        raise
    finally:
        session.close()
