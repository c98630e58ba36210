"""Infinite-scroll paging over TMDB list endpoints."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable

from ..categories import BrowseGenre
from ..errors import TMDBError
from ..models import MediaKind, Title
from ..utils import is_listable, unseen_titles
from .tmdb import DEFAULT_SORT, DiscoverFilters, TMDBClient

logger = logging.getLogger(__name__)

PageFetcher = Callable[[int], Awaitable[list[Title]]]
ItemFilter = Callable[[Title], bool]

RATING_VOTE_FLOOR = 200


class SortOption(str, Enum):
    DEFAULT = "default"
    POPULARITY = "popularity"
    NAME = "name"
    RELEASE_DATE = "release_date"
    RATING = "rating"

    def sort_by(self, kind: str) -> str:
        if self is SortOption.NAME:
            return "original_title.asc" if kind == "movie" else "original_name.asc"
        if self is SortOption.RELEASE_DATE:
            return "primary_release_date.desc" if kind == "movie" else "first_air_date.desc"
        if self is SortOption.RATING:
            return "vote_average.desc"
        return DEFAULT_SORT

    @property
    def vote_count_min(self) -> int | None:
        # Rating order is meaningless without a vote floor.
        return RATING_VOTE_FLOOR if self is SortOption.RATING else None


class PaginatedTitles:
    """Accumulates pages of titles, skipping filtered-out and duplicate items.

    ``generation`` increases on every :meth:`reset`; a page requested under an
    older generation is dropped when it arrives.
    """

    def __init__(self, fetch_page: PageFetcher, *, item_filter: ItemFilter = is_listable) -> None:
        self._fetch_page = fetch_page
        self._item_filter = item_filter
        self.items: list[Title] = []
        self.page = 1
        self.has_more = True
        self.is_fetching = False
        self.generation = 0
        self.last_error: Exception | None = None

    def reset(self) -> None:
        self.items = []
        self.page = 1
        self.has_more = True
        self.is_fetching = False
        self.last_error = None
        self.generation += 1

    async def reload(self) -> list[Title]:
        self.reset()
        return await self.load_more()

    async def load_more(self) -> list[Title]:
        """Fetch the next page with visible items and return what was appended."""

        if self.is_fetching or not self.has_more:
            return []
        generation = self.generation
        self.is_fetching = True
        try:
            while True:
                page = self.page
                try:
                    raw = await self._fetch_page(page)
                except TMDBError as exc:
                    if generation != self.generation:
                        return []
                    logger.warning("Failed to load page %s: %s", page, exc)
                    self.last_error = exc
                    return []

                if generation != self.generation:
                    logger.debug("Discarding page %s fetched before a reset", page)
                    return []
                if not raw:
                    self.has_more = False
                    return []

                visible = [title for title in raw if self._item_filter(title)]
                self.page = page + 1
                if not visible:
                    continue

                fresh = unseen_titles(self.items, visible)
                self.items.extend(fresh)
                self.last_error = None
                return fresh
        finally:
            if generation == self.generation:
                self.is_fetching = False


def discover_pages(
    client: TMDBClient,
    kind: MediaKind,
    sort: SortOption = SortOption.DEFAULT,
    *,
    year: int | None = None,
    genre_id: int | None = None,
) -> PaginatedTitles:
    """Page through ``/discover`` for one year and/or genre."""

    filters = DiscoverFilters(
        genre_id=genre_id,
        sort_by=sort.sort_by(kind),
        vote_count_min=sort.vote_count_min,
    )

    async def fetch(page: int) -> list[Title]:
        return await client.fetch_titles("discover", kind, year=year, filters=filters, page=page)

    return PaginatedTitles(fetch)


def top_rated_pages(client: TMDBClient, kind: MediaKind) -> PaginatedTitles:
    async def fetch(page: int) -> list[Title]:
        return await client.fetch_titles("top_rated", kind, page=page)

    return PaginatedTitles(fetch)


class GenreBrowser:
    """Movie and/or show grids for one genre sharing a sort order."""

    def __init__(
        self,
        client: TMDBClient,
        genre: BrowseGenre,
        *,
        kind: MediaKind | None = None,
        sort: SortOption = SortOption.DEFAULT,
    ) -> None:
        self._client = client
        self.genre = genre
        self.sort = sort
        self.movies = PaginatedTitles(self._fetcher("movie")) if kind in (None, "movie") else None
        self.shows = PaginatedTitles(self._fetcher("tv")) if kind in (None, "tv") else None

    @property
    def controllers(self) -> list[PaginatedTitles]:
        return [controller for controller in (self.movies, self.shows) if controller is not None]

    def _fetcher(self, kind: MediaKind) -> PageFetcher:
        async def fetch(page: int) -> list[Title]:
            filters = DiscoverFilters(
                genre_id=self.genre.id_for(kind),
                sort_by=self.sort.sort_by(kind),
                vote_count_min=self.sort.vote_count_min,
            )
            return await self._client.fetch_titles("discover", kind, filters=filters, page=page)

        return fetch

    async def load(self) -> None:
        await asyncio.gather(*(controller.load_more() for controller in self.controllers))

    async def change_sort(self, sort: SortOption) -> None:
        self.sort = sort
        for controller in self.controllers:
            controller.reset()
        await self.load()
