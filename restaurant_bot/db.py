"""
Database connection management.

The app factory builds one engine and session factory from
``Settings.database_url`` and keeps them on the application context, so the
WebSocket layer and the HTTP layer share the same database without module
globals.

Usage:
    from restaurant_bot.db import create_session_factory, init_db

    SessionLocal = create_session_factory("sqlite:///./restaurant_bot.db")
    init_db(SessionLocal)
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base


def create_session_factory(database_url: str) -> sessionmaker:
    """
    Create an engine for ``database_url`` and return a bound sessionmaker.

    In-memory SQLite URLs get a StaticPool so every connection sees the same
    database.
    """
    engine_kwargs = {"pool_pre_ping": True, "echo": False}
    if database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **engine_kwargs)

    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


def init_db(session_factory: sessionmaker) -> None:
    """Create any missing tables."""
    Base.metadata.create_all(bind=session_factory.kw["bind"])


@contextmanager
def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    """Yield a Session that is always closed afterwards."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
