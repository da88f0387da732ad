from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.config import get_settings

settings = get_settings()

# Sessions are bound lazily so the process entry point owns the engine lifecycle
SessionLocal = sessionmaker(autocommit=False, autoflush=False, future=True)

_engine: Engine | None = None


def init_engine(url: str | None = None, *, engine: Engine | None = None) -> Engine:
    """Create (or adopt) the process wide engine and bind the session factory to it."""

    global _engine
    if engine is None:
        url = url or settings.database_url
        options: dict = {"echo": settings.debug, "future": True}
        if not url.startswith("sqlite"):
            # pool_size: connections kept open, max_overflow: burst capacity,
            # pool_pre_ping: drop stale connections before use
            options.update(pool_size=10, max_overflow=20, pool_pre_ping=True)
        engine = create_engine(url, **options)
    _engine = engine
    SessionLocal.configure(bind=engine)
    return engine


def get_engine() -> Engine | None:
    return _engine


def dispose_engine() -> None:
    """Release pooled connections held by the configured engine."""

    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_session() -> Iterator[Session]:
    """Context manager for short-lived database sessions.

    Use this in WebSocket handlers instead of Depends(get_db) to avoid
    holding database connections for the entire WebSocket connection lifetime.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
