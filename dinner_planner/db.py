"""Database engine + session management."""

from __future__ import annotations

from contextlib import suppress

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from .models import Base

_engine: Engine | None = None
_SessionFactory: scoped_session[Session] | None = None


def _normalize_url(url: str) -> str:
    # Normalize postgres schemes to ensure SQLAlchemy uses psycopg v3
    if url.startswith("postgres://"):
        return "postgresql+psycopg://" + url[len("postgres://") :]
    if url.startswith("postgresql://") and "+" not in url.split("://", 1)[1].split("@", 1)[0]:
        return "postgresql+psycopg://" + url[len("postgresql://") :]
    return url


def init_engine(database_url: str, force: bool = False) -> Engine:
    """Initialize global engine (idempotent) or reinitialize when force=True."""
    global _engine, _SessionFactory
    if _engine is not None and not force:
        return _engine
    if _engine is not None:
        _engine.dispose()
        if _SessionFactory is not None:
            with suppress(Exception):  # pragma: no cover
                _SessionFactory.remove()
    _engine = create_engine(_normalize_url(database_url), future=True, echo=False)
    _SessionFactory = scoped_session(
        sessionmaker(bind=_engine, autoflush=False, autocommit=False, expire_on_commit=False)
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("DB not initialized; call init_engine first")
    return _engine


def get_session() -> Session:
    """Thread-scoped session used by request handlers; released in teardown."""
    if _SessionFactory is None:
        raise RuntimeError("DB not initialized; call init_engine first")
    return _SessionFactory()


def remove_session() -> None:
    if _SessionFactory is not None:
        _SessionFactory.remove()


def get_new_session() -> Session:
    """Return a brand-new Session not bound to the thread-scoped registry.

    The quota gate uses these so that its counter transaction commits
    independently of whatever the downstream handler does with the
    request-scoped session.
    """
    if _engine is None:
        raise RuntimeError("DB not initialized; call init_engine first")
    factory = sessionmaker(bind=_engine, autoflush=False, autocommit=False, expire_on_commit=False)
    return factory()


def create_all() -> None:  # dev helper ONLY for fresh ephemeral DBs (tests, scratch). Use Alembic in normal flows.
    if _engine is None:
        raise RuntimeError("Engine not initialized")
    Base.metadata.create_all(_engine)
