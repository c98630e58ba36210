from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from watchman.config import Settings
from watchman.database import Database
from watchman.errors import BadResponseError, NotFoundError, RateLimitedError, TMDBError
from watchman.main import register_routes
from watchman.models import Person, SeasonDetail, Title
from watchman.services.details import DetailService
from watchman.services.home import SearchService
from watchman.services.library import LibraryStore
from watchman.services.tmdb import TMDBClient


class ScriptedClient(TMDBClient):
    """TMDB client stub that raises or answers without any network access."""

    def __init__(self, error: TMDBError | None = None) -> None:
        # Deliberately skip super().__init__ to avoid building an HTTP client.
        self.error = error

    async def fetch_season(self, show_id: int, season_number: int) -> SeasonDetail:  # type: ignore[override]
        if self.error is not None:
            raise self.error
        return SeasonDetail.model_validate(
            {"episodes": [{"id": 1, "name": "Pilot", "episode_number": 1}]}
        )


class ScriptedSearch(SearchService):
    def __init__(self) -> None:
        self.queries: list[str] = []

    async def search(self, query: str) -> tuple[list[Title], list[Person]]:  # type: ignore[override]
        self.queries.append(query)
        return [Title(id=949, title="Heat")], [Person(id=1158, name="Al Pacino")]


def build_app(**state: Any) -> FastAPI:
    app = FastAPI()
    register_routes(app)
    for name, value in state.items():
        setattr(app.state, name, value)
    return app


def library_store(tmp_path) -> LibraryStore:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    asyncio.run(database.create_all())
    asyncio.run(database.dispose())
    return LibraryStore(database)


def test_healthcheck() -> None:
    with TestClient(build_app()) as client:
        response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (NotFoundError("/3/tv/1/season/9"), 404),
        (RateLimitedError(12), 429),
        (BadResponseError("boom", status_code=500), 502),
    ],
)
def test_tmdb_errors_map_to_http_status(error: TMDBError, status: int) -> None:
    app = build_app(tmdb_client=ScriptedClient(error))

    with TestClient(app) as client:
        response = client.get("/titles/tv/1/seasons/9")

    assert response.status_code == status
    assert response.json()["detail"] == str(error)
    if status == 429:
        assert response.headers["Retry-After"] == "12"


def test_season_route_returns_episodes() -> None:
    with TestClient(build_app(tmdb_client=ScriptedClient())) as client:
        response = client.get("/titles/tv/1396/seasons/1")

    assert response.status_code == 200
    assert response.json()["episodes"][0]["name"] == "Pilot"


def test_missing_service_is_a_server_error() -> None:
    with TestClient(build_app(), raise_server_exceptions=False) as client:
        response = client.get("/titles/tv/1396/seasons/1")

    assert response.status_code == 500


def test_search_strips_query() -> None:
    search = ScriptedSearch()

    with TestClient(build_app(search_service=search)) as client:
        response = client.get("/search", params={"q": "  heat "})

    assert search.queries == ["heat"]
    payload = response.json()
    assert payload["titles"][0]["title"] == "Heat"
    assert payload["people"][0]["name"] == "Al Pacino"


def test_unknown_genre_is_not_found() -> None:
    with TestClient(build_app(tmdb_client=ScriptedClient())) as client:
        response = client.get("/genres/424242")

    assert response.status_code == 404


def test_title_detail_surfaces_upstream_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/3/movie/550":
            return httpx.Response(
                200,
                json={"id": 550, "title": "Fight Club", "vote_average": 8.4, "credits": {"cast": [], "crew": []}},
            )
        return httpx.Response(404, json={"status_code": 34})

    settings = Settings(_env_file=None, TMDB_API_KEY="k")  # type: ignore[call-arg]
    client = TMDBClient(settings, httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    app = build_app(tmdb_client=client, detail_service=DetailService(settings, client))

    with TestClient(app) as test_client:
        found = test_client.get("/titles/movie/550")
        missing = test_client.get("/titles/movie/1")

    assert found.status_code == 200
    assert found.json()["detail"]["title"]["title"] == "Fight Club"
    assert found.json()["director"] is None
    assert missing.status_code == 404


def test_library_round_trip(tmp_path) -> None:
    app = build_app(library_store=library_store(tmp_path))
    fight_club = {"id": 550, "title": "Fight Club", "poster_path": "/fc.jpg"}

    with TestClient(app) as client:
        added = client.post("/library/watchlist", json=fight_club)
        rated = client.put("/library/rating", json={"title": fight_club, "rating": 9})
        rejected = client.post("/library/watched", json={"title": "No id"})
        overview = client.get("/library")

    assert added.json()["item"]["is_watchlist"] is True
    assert rated.json()["item"]["is_watched"] is True
    assert rated.json()["item"]["is_watchlist"] is False
    assert rejected.status_code == 400
    assert overview.json()["stats"] == {"watchlist": 0, "watched": 1, "rated": 1}
    assert overview.json()["rated"][0]["title_name"] == "Fight Club"


def test_episode_progress_routes(tmp_path) -> None:
    app = build_app(library_store=library_store(tmp_path))

    with TestClient(app) as client:
        toggled = client.post("/library/shows/1396/seasons/1/episodes/4")
        season = client.post("/library/shows/1396/seasons/2", json={"episodes": [1, 2, 3]})
        progress = client.get("/library/shows/1396/progress")
        shows = client.get("/library/shows")
        cleared = client.delete("/library/shows/1396/seasons/2")

    assert toggled.json() == {"watched": True}
    assert season.json() == {"watched": 3}
    assert progress.json() == {"watched": 4, "latest": {"season": 2, "episode": 3}}
    assert shows.json() == {"show_ids": [1396]}
    assert cleared.json() == {"watched": 0}


def test_saved_titles_routes(tmp_path) -> None:
    app = build_app(library_store=library_store(tmp_path))

    with TestClient(app) as client:
        client.post("/saved", json={"id": 1396, "name": "Breaking Bad"})
        listed = client.get("/saved")
        client.delete("/saved/tv/1396")
        emptied = client.get("/saved")

    assert [title["name"] for title in listed.json()["titles"]] == ["Breaking Bad"]
    assert emptied.json()["titles"] == []
