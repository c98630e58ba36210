"""Home screen aggregation and combined title/people search."""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import date
from enum import Enum
from typing import Any, Awaitable, Callable

from ..errors import TMDBError
from ..models import CategorySection, Person, Title
from ..utils import filter_titles, interleave
from .discovery import CategoryDiscovery
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)

FEATURED_LIMIT = 20

# (attribute, kind, family) for every list shelf on the home screen.
HOME_SHELVES: tuple[tuple[str, str, str], ...] = (
    ("trending_movies", "movie", "trending"),
    ("trending_tv", "tv", "trending"),
    ("top_rated_movies", "movie", "top_rated"),
    ("top_rated_tv", "tv", "top_rated"),
    ("in_theatres", "movie", "now_playing"),
    ("upcoming_movies", "movie", "upcoming"),
    ("popular_movies", "movie", "popular"),
    ("airing_today_tv", "tv", "airing_today"),
    ("on_the_air_tv", "tv", "on_the_air"),
    ("popular_tv", "tv", "popular"),
)


class FetchStatus(str, Enum):
    NOT_STARTED = "not_started"
    FETCHING = "fetching"
    SUCCESS = "success"
    FAILED = "failed"


def released_after(titles: list[Title], day: date) -> list[Title]:
    """Keep titles whose ``YYYY-MM-DD`` release date is strictly after ``day``."""

    cutoff = day.isoformat()
    return [title for title in titles if (title.release_date or "") > cutoff]


def has_profile(person: Person) -> bool:
    return bool(person.profile_path) and bool(person.name)


class HomeFeed:
    """Loads every home shelf concurrently; a failed shelf is left empty."""

    def __init__(
        self,
        client: TMDBClient,
        discovery: CategoryDiscovery | None = None,
        *,
        today: Callable[[], date] = date.today,
        rng: random.Random | None = None,
    ) -> None:
        self._client = client
        self._discovery = discovery or CategoryDiscovery(client)
        self._today = today
        self._rng = rng or random.Random()

        self.status = FetchStatus.NOT_STARTED
        self.trending_movies: list[Title] = []
        self.trending_tv: list[Title] = []
        self.top_rated_movies: list[Title] = []
        self.top_rated_tv: list[Title] = []
        self.in_theatres: list[Title] = []
        self.upcoming_movies: list[Title] = []
        self.popular_movies: list[Title] = []
        self.airing_today_tv: list[Title] = []
        self.on_the_air_tv: list[Title] = []
        self.popular_tv: list[Title] = []
        self.trending_people: list[Person] = []
        self.movie_sections: list[CategorySection] = []
        self.tv_sections: list[CategorySection] = []
        self.hero: Title | None = None

    @property
    def featured(self) -> list[Title]:
        return interleave(self.trending_movies, self.trending_tv, FEATURED_LIMIT)

    async def load(self, *, force: bool = False) -> None:
        """Populate the feed once; later calls are no-ops unless forced."""

        if self.trending_movies and not force:
            self.status = FetchStatus.SUCCESS
            return

        self.status = FetchStatus.FETCHING
        jobs: list[Awaitable[Any]] = [
            self._client.fetch_titles(family, kind) for _, kind, family in HOME_SHELVES
        ]
        jobs.append(self._client.fetch_trending_people())
        results = await asyncio.gather(*jobs, return_exceptions=True)

        for (attribute, kind, family), result in zip(HOME_SHELVES, results):
            if isinstance(result, Exception):
                logger.warning("Failed to fetch %s %s: %s", family, kind, result)
                continue
            titles = filter_titles(result)
            if attribute == "upcoming_movies":
                titles = released_after(titles, self._today())
            setattr(self, attribute, titles)

        people = results[-1]
        if isinstance(people, Exception):
            logger.warning("Failed to fetch trending people: %s", people)
        else:
            self.trending_people = [person for person in people if has_profile(person)]

        if self.trending_movies:
            self.hero = self._rng.choice(self.trending_movies)

        discovered = await self._discovery.discover()
        self.movie_sections = discovered.movie_sections
        self.tv_sections = discovered.tv_sections
        self.status = FetchStatus.SUCCESS

    async def load_upcoming(self) -> list[Title]:
        """Refresh only the upcoming shelf; failures propagate to the caller."""

        titles = await self._client.fetch_titles("upcoming", "movie")
        self.upcoming_movies = released_after(filter_titles(titles), self._today())
        return self.upcoming_movies


class SearchService:
    def __init__(self, client: TMDBClient) -> None:
        self._client = client

    async def search(self, query: str) -> tuple[list[Title], list[Person]]:
        """Search titles and people in parallel; a failing side yields ``[]``."""

        if not query:
            return [], []
        titles, people = await asyncio.gather(
            self._search_titles(query), self._search_people(query)
        )
        return titles, people

    async def _search_titles(self, query: str) -> list[Title]:
        try:
            found = await self._client.fetch_titles("search", "multi", query=query)
        except TMDBError as exc:
            logger.warning("Error fetching titles for %r: %s", query, exc)
            return []
        return [
            title
            for title in filter_titles(found)
            if title.media_type in ("movie", "tv", None) and title.has_poster
        ]

    async def _search_people(self, query: str) -> list[Person]:
        try:
            found = await self._client.search_people(query)
        except TMDBError as exc:
            logger.warning("Error fetching people for %r: %s", query, exc)
            return []
        return [person for person in found if person.profile_path]
