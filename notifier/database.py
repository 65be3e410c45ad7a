"""
SQLAlchemy async engine for the notification store.

PostgreSQL through asyncpg in production. Connections are bounded by short
timeouts so an unreachable database fails a store call quickly (surfacing
as StoreUnavailable) instead of stalling a polling tick.
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from .errors import ConfigurationMissing
from .tables import metadata  # noqa: F401 - exported for Alembic

# Seconds; asyncpg connect and per-statement limits
CONNECT_TIMEOUT = 5
COMMAND_TIMEOUT = 10

_engine: AsyncEngine | None = None


def _get_database_url() -> str:
    """DATABASE_URL with the async driver filled in (postgresql:// -> postgresql+asyncpg://)."""
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise ConfigurationMissing("DATABASE_URL")

    for prefix in ("postgres://", "postgresql://"):
        if database_url.startswith(prefix):
            return "postgresql+asyncpg://" + database_url[len(prefix):]
    return database_url


def get_engine() -> AsyncEngine:
    """Get or create the async engine singleton."""
    global _engine
    if _engine is None:
        database_url = _get_database_url()
        options = {"echo": os.environ.get("SQL_ECHO", "").lower() == "true"}
        if database_url.startswith("postgresql+asyncpg://"):
            options.update(
                pool_size=5,
                max_overflow=5,
                pool_timeout=CONNECT_TIMEOUT,
                pool_pre_ping=True,
                connect_args={
                    "timeout": CONNECT_TIMEOUT,
                    "command_timeout": COMMAND_TIMEOUT,
                },
            )
        _engine = create_async_engine(database_url, **options)
    return _engine


def set_engine(engine: AsyncEngine | None) -> None:
    """Replace the engine singleton (tests inject an in-memory SQLite engine)."""
    global _engine
    _engine = engine


@asynccontextmanager
async def get_connection() -> AsyncGenerator[AsyncConnection, None]:
    """Read-only connection from the pool."""
    async with get_engine().connect() as conn:
        yield conn


@asynccontextmanager
async def get_transaction() -> AsyncGenerator[AsyncConnection, None]:
    """
    Connection in a transaction: commits on success, rolls back on exception.

    Usage:
        async with get_transaction() as conn:
            await conn.execute(delete(notification_records).where(...))
    """
    async with get_engine().begin() as conn:
        yield conn


async def close_engine() -> None:
    """Dispose the pool. Call on shutdown."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def is_configured() -> bool:
    return bool(os.environ.get("DATABASE_URL"))


def get_sync_database_url() -> str:
    """psycopg2 URL for Alembic, which runs migrations synchronously."""
    database_url = _get_database_url()
    if database_url.startswith("postgresql+asyncpg://"):
        return database_url.replace("postgresql+asyncpg://", "postgresql://", 1)
    return database_url
