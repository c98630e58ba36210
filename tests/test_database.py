from __future__ import annotations

import asyncio
from datetime import datetime

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import IntegrityError

from watchman import db_models
from watchman.database import Database, ensure_sqlite_directory


def test_create_all_builds_library_tables(tmp_path) -> None:
    """Creating the schema twice should be harmless and yield every table."""

    database_path = tmp_path / "library.db"
    database = Database(f"sqlite+aiosqlite:///{database_path}")

    async def create_twice() -> None:
        await database.create_all()
        await database.create_all()
        await database.dispose()

    asyncio.run(create_twice())

    inspector_engine = create_engine(f"sqlite:///{database_path}")
    try:
        inspector = inspect(inspector_engine)
        assert {"library_items", "watched_episodes", "saved_titles"} <= set(
            inspector.get_table_names()
        )
        columns = {column["name"] for column in inspector.get_columns("watched_episodes")}
    finally:
        inspector_engine.dispose()

    assert {"show_id", "season_number", "episode_number", "episode_name", "still_path"} <= columns


def test_watched_episode_markers_are_unique(tmp_path) -> None:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'library.db'}")

    async def insert_twice() -> None:
        await database.create_all()
        try:
            async with database.session() as session:
                for _ in range(2):
                    session.add(
                        db_models.WatchedEpisode(
                            show_id=1396,
                            season_number=1,
                            episode_number=1,
                            watched_at=datetime(2024, 1, 1),
                        )
                    )
                await session.commit()
        finally:
            await database.dispose()

    with pytest.raises(IntegrityError):
        asyncio.run(insert_twice())


def test_library_item_helpers() -> None:
    item = db_models.LibraryItem(
        title_id=550,
        media_type="movie",
        title_name="Fight Club",
        is_watchlist=False,
        is_watched=False,
        user_rating=None,
    )

    assert item.unique_id == "movie_550"
    assert item.is_empty
    item.user_rating = 7.5
    assert item.is_rated and not item.is_empty


def test_sqlite_parent_directory_is_created(tmp_path) -> None:
    nested = tmp_path / "data" / "nested" / "library.db"

    path = ensure_sqlite_directory(f"sqlite+aiosqlite:///{nested}")

    assert path == nested
    assert nested.parent.is_dir()
    assert ensure_sqlite_directory("sqlite+aiosqlite:///:memory:") is None
    assert ensure_sqlite_directory("postgresql+asyncpg://user@host/db") is None
