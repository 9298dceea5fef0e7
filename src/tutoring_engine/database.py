"""Database connection and session management."""

from __future__ import annotations

import logging
import zlib
from typing import TYPE_CHECKING

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tutoring_engine.config import get_settings
from tutoring_engine.retry import is_transient_disconnect

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


def get_engine(url: str | None = None) -> AsyncEngine:
    """Create async database engine."""
    url = url or get_settings().database_url
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=False)
        _enable_sqlite_savepoints(engine)
        return engine
    return create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let pysqlite honour SAVEPOINT by emitting BEGIN ourselves."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with the engine-wide session defaults."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Global engine and session factory
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_db() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Initialize database engine and session factory."""
    global _engine, _session_factory
    if _engine is None:
        _engine = get_engine()
        _session_factory = create_session_factory(_engine)
    return _engine, _session_factory


async def dispose_db() -> None:
    """Dispose the global engine (application shutdown)."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


class ConnectionMonitor:
    """Keeps the connection pool healthy for the retrying read paths.

    ensure_connected() pings the store and, when the ping hits a dropped
    connection, disposes the pool so the next checkout opens a fresh one.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def ensure_connected(self) -> None:
        """Verify the store answers, resetting the pool once if it does not."""
        try:
            await self._ping()
        except Exception as exc:
            if not is_transient_disconnect(exc):
                raise
            logger.warning("Store ping failed (%s), resetting connection pool", exc)
            await self.reset()
            await self._ping()

    async def reset(self) -> None:
        """Drop every pooled connection."""
        await self.engine.dispose()

    async def _ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))


def advisory_key(*parts: object) -> int:
    """Stable signed 32-bit key for an advisory lock."""
    raw = ":".join(str(p) for p in parts).encode()
    key = zlib.crc32(raw)
    return key - (1 << 32) if key >= (1 << 31) else key


async def acquire_xact_lock(session: AsyncSession, *parts: object) -> None:
    """Serialize writers on a logical key until the transaction ends.

    Uses pg_advisory_xact_lock on PostgreSQL; other dialects rely on the
    unique constraint of the row being written.
    """
    if session.bind is None or session.bind.dialect.name != "postgresql":
        return
    await session.execute(
        text("SELECT pg_advisory_xact_lock(:key)"),
        {"key": advisory_key(*parts)},
    )
