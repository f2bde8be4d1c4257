"""Async SQLAlchemy engine and session helpers.

Engine type is determined by the database URL scheme:
  - ``sqlite+aiosqlite://``   -> SQLite engine via aiosqlite (local / tests)
  - anything else (e.g. ``postgresql+asyncpg://``) -> pooled engine
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from saga_core.state.tables import Base

logger = logging.getLogger(__name__)


def get_engine(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 20,
) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Parameters
    ----------
    database_url:
        Connection string.  ``sqlite+aiosqlite:///:memory:`` gives an
        ephemeral database.
    pool_size:
        Persistent connections for pooled backends (ignored for SQLite).
    max_overflow:
        Overflow connections for pooled backends (ignored for SQLite).
    """
    if database_url.startswith("sqlite"):
        db_path = database_url.split("///", 1)[-1] if "///" in database_url else ":memory:"
        return get_local_engine(db_path or ":memory:")

    engine = create_async_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_timeout=10,
        echo=False,
    )
    logger.info("Created async engine pool_size=%d max_overflow=%d", pool_size, max_overflow)
    return engine


def get_local_engine(db_path: Path | str = ":memory:") -> AsyncEngine:
    """Create an async engine backed by SQLite via aiosqlite.

    Parent directories of an on-disk database are created automatically.
    """
    if db_path != ":memory:":
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        url = f"sqlite+aiosqlite:///{path}"
    else:
        url = "sqlite+aiosqlite:///:memory:"

    engine = create_async_engine(url, echo=False, connect_args={"check_same_thread": False})

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn: object, _: object) -> None:
        cursor = dbapi_conn.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    logger.info("Created SQLite engine: %s", url)
    return engine


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables if they do not exist (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session that commits on success and rolls back on error."""
    session = factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
