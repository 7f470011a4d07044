"""Async database access for Transcript-Engine.

Decisions are serialized by the database itself (a conditional UPDATE and a
partial unique index), so every worker process can share one database
without in-process coordination.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from transcript_engine.common.config import TranscriptSettings, get_settings
from transcript_engine.common.models import Base

# Import all model modules so Base.metadata is complete for create_all().
import transcript_engine.students.models  # noqa: F401
import transcript_engine.audit.models  # noqa: F401
from transcript_engine.certification.models import apply_pending_policy


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """Owns the async engine and hands out committing sessions."""

    def __init__(self, settings: TranscriptSettings | None = None):
        self._settings = settings or get_settings()
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_sqlite(self) -> bool:
        return self._settings.db_url.startswith("sqlite")

    async def init(self) -> None:
        self.engine = create_async_engine(self._settings.db_url, echo=False)
        if self.is_sqlite:
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self._session_factory = async_sessionmaker(
            self.engine, expire_on_commit=False
        )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on exit and rolls back on any exception."""
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not initialized, call init() first")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Create missing tables, then apply the duplicate-Pending policy."""
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized, call init() first")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            await conn.run_sync(
                apply_pending_policy, self._settings.allow_duplicate_pending,
            )

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
