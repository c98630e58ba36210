"""Async SQLAlchemy plumbing for the personal library."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from sqlalchemy import MetaData
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the library, episode and saved-title tables."""

    metadata = MetaData()


def ensure_sqlite_directory(database_url: str) -> Path | None:
    """Create the parent directory of a file-backed SQLite database.

    Returns the database file path, or ``None`` for in-memory and non-SQLite
    URLs.
    """

    url = make_url(database_url)
    if not url.drivername.startswith("sqlite") or url.database in (None, "", ":memory:"):
        return None
    path = Path(url.database)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


class Database:
    """Owns the async engine and hands out library sessions."""

    def __init__(self, database_url: str):
        path = ensure_sqlite_directory(database_url)
        if path is not None:
            logger.debug("Library database at %s", path)
        self._engine: AsyncEngine = create_async_engine(database_url)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine, expire_on_commit=False
        )

    async def create_all(self) -> None:
        """Create the library tables; existing tables are left untouched."""

        # Imported for its side effect of registering the mapped tables.
        from . import db_models  # noqa: F401

        async with self._engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session; callers commit explicitly."""

        async with self.session_factory() as session:
            yield session
