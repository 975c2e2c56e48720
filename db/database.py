"""
Database engine, session management, and initialization.
The default engine reads DATABASE_URL; `create_session_factory` builds an
isolated engine + session factory (in-memory SQLite for tests and demos).
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from config.settings import settings
from db.models import Base

logger = logging.getLogger(__name__)


def build_engine(url: str, echo: bool = False) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True)
    kwargs = {"connect_args": {"check_same_thread": False}, "echo": echo}
    # in-memory SQLite lives in one connection; share it across threads
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Optional[Engine] = None) -> None:
    """Create all tables."""
    target = bind or engine
    Base.metadata.create_all(bind=target)
    logger.info(f"✅ Database initialized ({target.url.render_as_string(hide_password=True)}).")


def create_session_factory(url: str = "sqlite://") -> sessionmaker:
    """Fresh engine with tables created, for callers that must not share the default database."""
    isolated = build_engine(url)
    init_db(isolated)
    return sessionmaker(autocommit=False, autoflush=False, bind=isolated)


@contextmanager
def get_db(session_factory: sessionmaker = SessionLocal) -> Generator[Session, None, None]:
    """Transactional scope: commit on success, roll back on error."""
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
