"""SQLAlchemy 2.x async database setup.

This module defines the async engine and session factory but does not
hard-code any connection credentials. SQLite (aiosqlite) engines get the
driver-level BEGIN handling needed for per-row SAVEPOINTs to behave, and
a Unicode-aware ``lower()`` for case-insensitive lookups.
"""

from __future__ import annotations

from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import settings


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def configure_sqlite(engine: AsyncEngine) -> None:
    """Let SQLAlchemy emit BEGIN itself so nested transactions work on SQLite,
    and replace SQLite's ASCII-only ``lower()`` with a Unicode-aware one.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # stop the driver from issuing its own BEGIN
        dbapi_connection.isolation_level = None
        # matches str.lower used for lookup terms
        dbapi_connection.create_function("lower", 1, _unicode_lower)

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine for ``url``."""
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=echo)
        configure_sqlite(engine)
        return engine

    return create_async_engine(
        url,
        echo=echo,
        pool_size=settings.db.pool_size,
        max_overflow=settings.db.max_overflow,
    )


engine: AsyncEngine = build_engine(settings.db.url, echo=settings.db.echo)

AsyncSessionMaker = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI-friendly async session dependency.

    Usage:
        async def endpoint(session: AsyncSession = Depends(get_session)):
            ...
    """

    async with AsyncSessionMaker() as session:
        yield session
