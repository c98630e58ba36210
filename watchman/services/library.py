"""Personal library: watchlist, watched flags, ratings and episode progress."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import Database
from ..db_models import LibraryItem, SavedTitle, WatchedEpisode
from ..errors import NotFoundError
from ..models import Episode, MediaKind, Title
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown"


class LibraryEntry(BaseModel):
    """Serialisable view of a :class:`LibraryItem` row."""

    model_config = ConfigDict(from_attributes=True)

    title_id: int
    media_type: str
    title_name: str
    poster_path: str | None = None
    is_watchlist: bool = False
    is_watched: bool = False
    user_rating: float | None = None
    added_at: datetime
    modified_at: datetime


@dataclass(frozen=True, slots=True)
class LibraryStats:
    watchlist: int
    watched: int
    rated: int


@dataclass(frozen=True, slots=True)
class EpisodeTarget:
    season: int
    episode: int
    details: Episode | None = None


def _title_key(title: Title) -> tuple[int, MediaKind]:
    if title.id is None:
        raise ValueError("Cannot store a title without an id")
    return title.id, title.media_kind


class LibraryStore:
    """Single owner of the library tables.

    Every public coroutine runs under one lock so reads and writes from
    concurrent request handlers never interleave.
    """

    def __init__(
        self,
        database: Database,
        *,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._database = database
        self._clock = clock
        self._lock = asyncio.Lock()

    # Title-level state ------------------------------------------------

    async def get_item(self, title_id: int, media_type: str) -> LibraryItem | None:
        async with self._lock, self._database.session() as session:
            return await self._find_item(session, title_id, media_type)

    async def is_in_watchlist(self, title_id: int, media_type: str) -> bool:
        item = await self.get_item(title_id, media_type)
        return item.is_watchlist if item else False

    async def is_watched(self, title_id: int, media_type: str) -> bool:
        item = await self.get_item(title_id, media_type)
        return item.is_watched if item else False

    async def get_rating(self, title_id: int, media_type: str) -> float | None:
        item = await self.get_item(title_id, media_type)
        return item.user_rating if item else None

    async def toggle_watchlist(self, title: Title) -> LibraryItem | None:
        """Flip the watchlist flag; returns ``None`` when the record was removed."""

        async with self._lock, self._database.session() as session:
            item = await self._get_or_create(session, title)
            item.is_watchlist = not item.is_watchlist
            item.modified_at = self._clock()
            if item.is_watchlist:
                # Queued titles are unwatched and unrated.
                item.is_watched = False
                item.user_rating = None
            return await self._commit_or_remove(session, item)

    async def toggle_watched(self, title: Title) -> LibraryItem | None:
        async with self._lock, self._database.session() as session:
            item = await self._get_or_create(session, title)
            item.is_watched = not item.is_watched
            item.modified_at = self._clock()
            if item.is_watched:
                item.is_watchlist = False
            else:
                item.user_rating = None
            return await self._commit_or_remove(session, item)

    async def set_rating(self, title: Title, rating: float | None) -> LibraryItem | None:
        """Store a rating; rating a title marks it watched and off the watchlist."""

        async with self._lock, self._database.session() as session:
            item = await self._get_or_create(session, title)
            item.user_rating = rating
            item.modified_at = self._clock()
            if rating is not None:
                item.is_watched = True
                item.is_watchlist = False
            return await self._commit_or_remove(session, item)

    async def get_watchlist(self) -> list[LibraryItem]:
        return await self._list_items(LibraryItem.is_watchlist.is_(True))

    async def get_watched(self) -> list[LibraryItem]:
        return await self._list_items(LibraryItem.is_watched.is_(True))

    async def get_rated(self) -> list[LibraryItem]:
        return await self._list_items(LibraryItem.user_rating.is_not(None))

    async def get_stats(self) -> LibraryStats:
        async with self._lock, self._database.session() as session:
            counts = []
            for condition in (
                LibraryItem.is_watchlist.is_(True),
                LibraryItem.is_watched.is_(True),
                LibraryItem.user_rating.is_not(None),
            ):
                stmt = select(func.count()).select_from(LibraryItem).where(condition)
                counts.append((await session.execute(stmt)).scalar_one())
        return LibraryStats(watchlist=counts[0], watched=counts[1], rated=counts[2])

    # Episode-level state ----------------------------------------------

    async def is_episode_watched(self, show_id: int, season: int, episode: int) -> bool:
        async with self._lock, self._database.session() as session:
            return await self._find_episode(session, show_id, season, episode) is not None

    async def toggle_episode_watched(self, show_id: int, season: int, episode: int) -> bool:
        """Flip an episode's watched marker and return the new state."""

        async with self._lock, self._database.session() as session:
            existing = await self._find_episode(session, show_id, season, episode)
            if existing is not None:
                await session.delete(existing)
                watched = False
            else:
                session.add(self._new_episode(show_id, season, episode))
                watched = True
            await session.commit()
            return watched

    async def mark_episode_watched(
        self,
        show_id: int,
        season: int,
        episode: int,
        *,
        episode_name: str | None = None,
        still_path: str | None = None,
    ) -> None:
        """Insert a watched marker unless one exists; never touches an existing one."""

        async with self._lock, self._database.session() as session:
            if await self._find_episode(session, show_id, season, episode) is None:
                session.add(
                    self._new_episode(
                        show_id, season, episode, episode_name=episode_name, still_path=still_path
                    )
                )
                await session.commit()

    async def update_episode_metadata(
        self,
        show_id: int,
        season: int,
        episode: int,
        *,
        name: str | None,
        still_path: str | None,
    ) -> None:
        async with self._lock, self._database.session() as session:
            existing = await self._find_episode(session, show_id, season, episode)
            if existing is None:
                return
            existing.episode_name = name
            existing.still_path = still_path
            await session.commit()

    async def mark_season_watched(
        self, show_id: int, season: int, episode_numbers: Iterable[int]
    ) -> None:
        async with self._lock, self._database.session() as session:
            await self._insert_missing(session, show_id, season, episode_numbers)
            await session.commit()

    async def unmark_season_watched(
        self, show_id: int, season: int, episode_numbers: Iterable[int] | None = None
    ) -> None:
        """Delete watched markers for the given episodes, or the whole season."""

        stmt = delete(WatchedEpisode).where(
            WatchedEpisode.show_id == show_id,
            WatchedEpisode.season_number == season,
        )
        if episode_numbers is not None:
            stmt = stmt.where(WatchedEpisode.episode_number.in_(list(episode_numbers)))
        async with self._lock, self._database.session() as session:
            await session.execute(stmt)
            await session.commit()

    async def mark_all_seasons_watched(
        self, show_id: int, seasons: Sequence[tuple[int, int]]
    ) -> None:
        """Mark episodes ``1..max(1, count)`` of every ``(season, count)`` pair."""

        async with self._lock, self._database.session() as session:
            for season_number, episode_count in seasons:
                await self._insert_missing(
                    session, show_id, season_number, range(1, max(1, episode_count) + 1)
                )
            await session.commit()

    async def get_watched_episodes(self, show_id: int, season: int) -> list[int]:
        stmt = (
            select(WatchedEpisode.episode_number)
            .where(WatchedEpisode.show_id == show_id, WatchedEpisode.season_number == season)
            .order_by(WatchedEpisode.episode_number)
        )
        async with self._lock, self._database.session() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def get_show_progress(self, show_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(WatchedEpisode)
            .where(WatchedEpisode.show_id == show_id)
        )
        async with self._lock, self._database.session() as session:
            return (await session.execute(stmt)).scalar_one()

    async def get_shows_in_progress(self) -> list[int]:
        """Return ids of shows with watched episodes, most recently watched first."""

        last_watched = func.max(WatchedEpisode.watched_at)
        stmt = (
            select(WatchedEpisode.show_id)
            .group_by(WatchedEpisode.show_id)
            .order_by(last_watched.desc(), WatchedEpisode.show_id)
        )
        async with self._lock, self._database.session() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def get_season_progress(self, show_id: int, season: int) -> int:
        stmt = (
            select(func.count())
            .select_from(WatchedEpisode)
            .where(WatchedEpisode.show_id == show_id, WatchedEpisode.season_number == season)
        )
        async with self._lock, self._database.session() as session:
            return (await session.execute(stmt)).scalar_one()

    async def get_latest_watched_episode_details(self, show_id: int) -> WatchedEpisode | None:
        stmt = (
            select(WatchedEpisode)
            .where(WatchedEpisode.show_id == show_id)
            .order_by(WatchedEpisode.season_number.desc(), WatchedEpisode.episode_number.desc())
            .limit(1)
        )
        async with self._lock, self._database.session() as session:
            return (await session.execute(stmt)).scalar_one_or_none()

    async def get_latest_watched_episode(self, show_id: int) -> EpisodeTarget | None:
        latest = await self.get_latest_watched_episode_details(show_id)
        if latest is None:
            return None
        return EpisodeTarget(season=latest.season_number, episode=latest.episode_number)

    async def get_next_episode_to_watch(self, show_id: int) -> EpisodeTarget | None:
        """Return the episode after the furthest one watched, without validating it."""

        latest = await self.get_latest_watched_episode(show_id)
        if latest is None:
            return None
        return EpisodeTarget(season=latest.season, episode=latest.episode + 1)

    # Saved titles -----------------------------------------------------

    async def save_title(self, title: Title) -> None:
        title_id, media_type = _title_key(title)
        payload = title.model_dump(mode="json", exclude_none=True)
        async with self._lock, self._database.session() as session:
            stmt = select(SavedTitle).where(
                SavedTitle.title_id == title_id, SavedTitle.media_type == media_type
            )
            record = (await session.execute(stmt)).scalar_one_or_none()
            if record is None:
                session.add(
                    SavedTitle(
                        title_id=title_id,
                        media_type=media_type,
                        payload=payload,
                        saved_at=self._clock(),
                    )
                )
            else:
                record.payload = payload
            await session.commit()

    async def remove_saved_title(self, title_id: int, media_type: str) -> None:
        stmt = delete(SavedTitle).where(
            SavedTitle.title_id == title_id, SavedTitle.media_type == media_type
        )
        async with self._lock, self._database.session() as session:
            await session.execute(stmt)
            await session.commit()

    async def get_saved_titles(self) -> list[Title]:
        stmt = select(SavedTitle).order_by(SavedTitle.saved_at.desc(), SavedTitle.id.desc())
        async with self._lock, self._database.session() as session:
            records = (await session.execute(stmt)).scalars().all()
        titles: list[Title] = []
        for record in records:
            try:
                titles.append(Title.model_validate(record.payload))
            except ValidationError as exc:
                logger.warning("Saved title %s could not be validated: %s", record.title_id, exc)
        return titles

    # Helpers ----------------------------------------------------------

    async def _list_items(self, condition) -> list[LibraryItem]:
        stmt = (
            select(LibraryItem)
            .where(condition)
            .order_by(LibraryItem.modified_at.desc(), LibraryItem.id.desc())
        )
        async with self._lock, self._database.session() as session:
            return list((await session.execute(stmt)).scalars().all())

    @staticmethod
    async def _find_item(
        session: AsyncSession, title_id: int, media_type: str
    ) -> LibraryItem | None:
        stmt = select(LibraryItem).where(
            LibraryItem.title_id == title_id, LibraryItem.media_type == media_type
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    async def _get_or_create(self, session: AsyncSession, title: Title) -> LibraryItem:
        title_id, media_type = _title_key(title)
        name = title.name or title.title or UNKNOWN_NAME
        existing = await self._find_item(session, title_id, media_type)
        if existing is not None:
            if title.poster_path and existing.poster_path != title.poster_path:
                existing.poster_path = title.poster_path
            if name != UNKNOWN_NAME and existing.title_name != name:
                existing.title_name = name
            return existing

        now = self._clock()
        item = LibraryItem(
            title_id=title_id,
            media_type=media_type,
            title_name=name,
            poster_path=title.poster_path,
            is_watchlist=False,
            is_watched=False,
            user_rating=None,
            added_at=now,
            modified_at=now,
        )
        session.add(item)
        return item

    @staticmethod
    async def _commit_or_remove(session: AsyncSession, item: LibraryItem) -> LibraryItem | None:
        if item.is_empty:
            if item in session.new:
                session.expunge(item)
            else:
                await session.delete(item)
            await session.commit()
            return None
        await session.commit()
        return item

    @staticmethod
    async def _find_episode(
        session: AsyncSession, show_id: int, season: int, episode: int
    ) -> WatchedEpisode | None:
        stmt = select(WatchedEpisode).where(
            WatchedEpisode.show_id == show_id,
            WatchedEpisode.season_number == season,
            WatchedEpisode.episode_number == episode,
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    async def _insert_missing(
        self,
        session: AsyncSession,
        show_id: int,
        season: int,
        episode_numbers: Iterable[int],
    ) -> None:
        stmt = select(WatchedEpisode.episode_number).where(
            WatchedEpisode.show_id == show_id, WatchedEpisode.season_number == season
        )
        existing = set((await session.execute(stmt)).scalars().all())
        for number in episode_numbers:
            if number in existing:
                continue
            existing.add(number)
            session.add(self._new_episode(show_id, season, number))

    def _new_episode(
        self,
        show_id: int,
        season: int,
        episode: int,
        *,
        episode_name: str | None = None,
        still_path: str | None = None,
    ) -> WatchedEpisode:
        return WatchedEpisode(
            show_id=show_id,
            season_number=season,
            episode_number=episode,
            episode_name=episode_name,
            still_path=still_path,
            watched_at=self._clock(),
        )


async def find_next_episode(
    store: LibraryStore, client: TMDBClient, show_id: int
) -> EpisodeTarget | None:
    """Resolve the next episode to watch against TMDB.

    Tries the episode after the latest watched one; when that does not exist
    (and it was not already episode 1) rolls over to episode 1 of the next
    season.
    """

    candidate = await store.get_next_episode_to_watch(show_id)
    if candidate is None:
        return None
    try:
        details = await client.fetch_episode(show_id, candidate.season, candidate.episode)
        return EpisodeTarget(candidate.season, candidate.episode, details)
    except NotFoundError:
        if candidate.episode <= 1:
            return None

    next_season = candidate.season + 1
    try:
        details = await client.fetch_episode(show_id, next_season, 1)
    except NotFoundError:
        logger.info("No next episode found for show %s", show_id)
        return None
    return EpisodeTarget(next_season, 1, details)
