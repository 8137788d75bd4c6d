# python
"""Database engine and session utilities.

This module sets up the asynchronous engine and session factory for the
Metadata Store and provides a dependency that yields one session per request.
"""
import os
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for ``url``.

    SQLite does not enforce foreign keys unless asked to on every connection,
    so folder and file references are switched on here. Other backends get
    connection health checks instead.
    """
    if make_url(url).get_backend_name() == "sqlite":
        db_engine = create_async_engine(url, echo=echo)
        event.listen(db_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return db_engine
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


# For testing, prioritize TEST_DATABASE_URL
if os.getenv("TESTING") == "true":
    DB_URL = os.getenv("TEST_DATABASE_URL") or settings.test_database_url or settings.database_url
else:
    DB_URL = settings.database_url

DB_URL = (DB_URL or "").strip()
if not DB_URL:
    raise RuntimeError(
        "DATABASE_URL is not configured. Set it in the environment or .env file "
        "(e.g., DATABASE_URL=sqlite+aiosqlite:///./nas.db)."
    )

engine = build_engine(DB_URL, echo=settings.debug)

AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, Any]:
    async with AsyncSessionLocal() as session:
        yield session
