"""Tests for the home feed and combined search."""

from __future__ import annotations

import random
from datetime import date
from typing import Any

import httpx
import pytest

from watchman.config import Settings
from watchman.models import CategorySection, Title
from watchman.services.discovery import CategoryDiscovery, DiscoveryResult
from watchman.services.home import FetchStatus, HomeFeed, SearchService, released_after
from watchman.services.tmdb import TMDBClient


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


class StaticDiscovery(CategoryDiscovery):
    def __init__(self) -> None:
        self.calls = 0

    async def discover(self) -> DiscoveryResult:
        self.calls += 1
        shelf = CategorySection(title="Cult Classics", subtitle="", items=[Title(id=9, title="Odd")])
        return DiscoveryResult(movie_sections=[shelf], tv_sections=[])


def page(*items: dict[str, Any]) -> httpx.Response:
    return httpx.Response(200, json={"results": list(items)})


def movie(title_id: int, **extra: Any) -> dict[str, Any]:
    return {"id": title_id, "title": f"Movie {title_id}", "poster_path": f"/{title_id}.jpg", **extra}


def show(title_id: int, **extra: Any) -> dict[str, Any]:
    return {"id": title_id, "name": f"Show {title_id}", "poster_path": f"/{title_id}.jpg", **extra}


def home_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path.removeprefix("/3/")
    if path == "tv/top_rated":
        return httpx.Response(500, text="upstream down")
    if path == "trending/movie/day":
        return page(movie(1), movie(2), movie(3, vote_average=10.0))
    if path == "trending/tv/day":
        return page(show(11), show(12))
    if path == "movie/upcoming":
        return page(
            movie(21, release_date="2024-05-01"),
            movie(22, release_date="2024-06-01"),
            movie(23, release_date="2024-07-01"),
            movie(24),
        )
    if path == "person/popular":
        return page(
            {"id": 100, "name": "Famous", "profile_path": "/famous.jpg"},
            {"id": 101, "name": "Faceless"},
        )
    if path.startswith("tv/"):
        return page(show(30))
    return page(movie(40))


def build_client(http_client: httpx.AsyncClient) -> TMDBClient:
    settings = Settings(_env_file=None, TMDB_API_KEY="k")  # type: ignore[call-arg]
    client = TMDBClient(settings, http_client)
    client._retry_delay = 0
    return client


def test_released_after_is_strict() -> None:
    titles = [
        Title(id=1, title="Past", release_date="2024-05-31"),
        Title(id=2, title="Today", release_date="2024-06-01"),
        Title(id=3, title="Future", release_date="2024-06-02"),
        Title(id=4, title="Undated"),
    ]

    assert [title.id for title in released_after(titles, date(2024, 6, 1))] == [3]


@pytest.mark.anyio("asyncio")
async def test_partial_failure_still_populates_the_feed() -> None:
    discovery = StaticDiscovery()
    async with httpx.AsyncClient(transport=httpx.MockTransport(home_handler)) as http_client:
        feed = HomeFeed(
            build_client(http_client),
            discovery,
            today=lambda: date(2024, 6, 1),
            rng=random.Random(1),
        )
        await feed.load()

    assert feed.status is FetchStatus.SUCCESS
    assert feed.top_rated_tv == []
    assert [title.id for title in feed.trending_movies] == [1, 2]
    assert [title.id for title in feed.upcoming_movies] == [23]
    assert [title.id for title in feed.popular_tv] == [30]
    assert [title.id for title in feed.in_theatres] == [40]
    assert [person.id for person in feed.trending_people] == [100]
    assert feed.hero in feed.trending_movies
    assert [title.id for title in feed.featured] == [1, 11, 2, 12]
    assert [section.title for section in feed.movie_sections] == ["Cult Classics"]
    assert discovery.calls == 1


@pytest.mark.anyio("asyncio")
async def test_loaded_feed_is_not_refetched_unless_forced() -> None:
    requests: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request.url.path)
        return home_handler(request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        feed = HomeFeed(build_client(http_client), StaticDiscovery())
        await feed.load()
        first_round = len(requests)
        await feed.load()
        assert len(requests) == first_round
        await feed.load(force=True)

    assert first_round == 11
    assert len(requests) == 22


@pytest.mark.anyio("asyncio")
async def test_search_filters_titles_and_people() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["query"] == "heat"
        if request.url.path.endswith("/search/person"):
            return page(
                {"id": 1, "name": "Al Pacino", "profile_path": "/al.jpg"},
                {"id": 2, "name": "Extra"},
            )
        return page(
            movie(10, media_type="movie"),
            show(11, media_type="tv"),
            {"id": 12, "name": "Person hit", "media_type": "person", "poster_path": "/p.jpg"},
            movie(13, media_type="movie", poster_path=None),
            movie(14, media_type="movie", vote_average=10.0),
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        titles, people = await SearchService(build_client(http_client)).search("heat")

    assert [title.id for title in titles] == [10, 11]
    assert [person.name for person in people] == ["Al Pacino"]


@pytest.mark.anyio("asyncio")
async def test_search_side_failure_returns_empty_side() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/search/multi"):
            return httpx.Response(503, text="unavailable")
        return page({"id": 1, "name": "Al Pacino", "profile_path": "/al.jpg"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = build_client(http_client)
        titles, people = await SearchService(client).search("heat")
        empty = await SearchService(client).search("")

    assert titles == []
    assert [person.id for person in people] == [1]
    assert empty == ([], [])
