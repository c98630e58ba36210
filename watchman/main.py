"""Entry point for the FastAPI-powered Watchman service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .categories import find_genre
from .config import settings
from .database import Database
from .errors import NotFoundError, RateLimitedError, TMDBError
from .models import MediaKind, Title
from .services.cache import ResponseCache
from .services.details import DetailService, LoadState
from .services.home import HomeFeed, SearchService
from .services.library import LibraryEntry, LibraryStore, find_next_episode
from .services.pagination import GenreBrowser, SortOption, discover_pages
from .services.tmdb import TMDBClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(_: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout_seconds, connect=10.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    client = TMDBClient(settings, tmdb_http_client, ResponseCache())
    detail_service = DetailService(settings, client)

    app.state.tmdb_client = client
    app.state.detail_service = detail_service
    app.state.home_feed = HomeFeed(client)
    app.state.search_service = SearchService(client)
    app.state.library_store = LibraryStore(database)
    app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await detail_service.aclose()
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="TMDB browsing, discovery and personal library tracking",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def _require(fastapi_app: FastAPI, name: str, expected: type) -> Any:
    service = getattr(fastapi_app.state, name, None)
    if not isinstance(service, expected):
        raise RuntimeError(f"{expected.__name__} not initialised")
    return service


def get_tmdb_client(fastapi_app: FastAPI) -> TMDBClient:
    return _require(fastapi_app, "tmdb_client", TMDBClient)


def get_detail_service(fastapi_app: FastAPI) -> DetailService:
    return _require(fastapi_app, "detail_service", DetailService)


def get_home_feed(fastapi_app: FastAPI) -> HomeFeed:
    return _require(fastapi_app, "home_feed", HomeFeed)


def get_search_service(fastapi_app: FastAPI) -> SearchService:
    return _require(fastapi_app, "search_service", SearchService)


def get_library_store(fastapi_app: FastAPI) -> LibraryStore:
    return _require(fastapi_app, "library_store", LibraryStore)


def status_for_error(exc: TMDBError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, RateLimitedError):
        return 429
    return 502


class RatingPayload(BaseModel):
    title: Title
    rating: float | None = None


class EpisodePayload(BaseModel):
    name: str | None = None
    still_path: str | None = None


class SeasonPayload(BaseModel):
    episodes: list[int] | None = None


def _entries(items: list[Any]) -> list[dict[str, Any]]:
    return [LibraryEntry.model_validate(item).model_dump(mode="json") for item in items]


def _titles(titles: list[Title]) -> list[dict[str, Any]]:
    return [title.model_dump(mode="json") for title in titles]


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.exception_handler(TMDBError)
    async def tmdb_error_handler(_: Request, exc: TMDBError) -> JSONResponse:
        status = status_for_error(exc)
        headers: dict[str, str] = {}
        if isinstance(exc, RateLimitedError) and exc.retry_after is not None:
            headers["Retry-After"] = str(exc.retry_after)
        if status == 502:
            logger.warning("Upstream TMDB failure: %s", exc)
        return JSONResponse({"detail": str(exc)}, status_code=status, headers=headers)

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    # Browsing ---------------------------------------------------------

    @fastapi_app.get("/home")
    async def home(refresh: bool = False) -> dict[str, Any]:
        feed = get_home_feed(fastapi_app)
        await feed.load(force=refresh)
        return {
            "status": feed.status.value,
            "hero": feed.hero.model_dump(mode="json") if feed.hero else None,
            "featured": _titles(feed.featured),
            "trending_movies": _titles(feed.trending_movies),
            "trending_tv": _titles(feed.trending_tv),
            "top_rated_movies": _titles(feed.top_rated_movies),
            "top_rated_tv": _titles(feed.top_rated_tv),
            "in_theatres": _titles(feed.in_theatres),
            "upcoming_movies": _titles(feed.upcoming_movies),
            "popular_movies": _titles(feed.popular_movies),
            "airing_today_tv": _titles(feed.airing_today_tv),
            "on_the_air_tv": _titles(feed.on_the_air_tv),
            "popular_tv": _titles(feed.popular_tv),
            "trending_people": [person.model_dump(mode="json") for person in feed.trending_people],
            "movie_sections": [s.model_dump(mode="json") for s in feed.movie_sections],
            "tv_sections": [s.model_dump(mode="json") for s in feed.tv_sections],
        }

    @fastapi_app.get("/discover/{kind}")
    async def discover(
        kind: MediaKind,
        page: int = 1,
        sort: SortOption = SortOption.DEFAULT,
        year: int | None = None,
        genre: int | None = None,
    ) -> dict[str, Any]:
        client = get_tmdb_client(fastapi_app)
        genre_id = None
        if genre is not None:
            known = find_genre(genre)
            genre_id = known.id_for(kind) if known else genre
        pages = discover_pages(client, kind, sort, year=year, genre_id=genre_id)
        pages.page = max(1, page)
        items = await pages.load_more()
        if pages.last_error is not None:
            raise pages.last_error
        return {"items": _titles(items), "next_page": pages.page, "has_more": pages.has_more}

    @fastapi_app.get("/genres/{genre_id}")
    async def genre_titles(
        genre_id: int, kind: MediaKind | None = None, sort: SortOption = SortOption.DEFAULT
    ) -> dict[str, Any]:
        genre = find_genre(genre_id)
        if genre is None:
            raise HTTPException(status_code=404, detail="Unknown genre")
        browser = GenreBrowser(get_tmdb_client(fastapi_app), genre, kind=kind, sort=sort)
        await browser.load()
        return {
            "genre": genre.name,
            "movies": _titles(browser.movies.items) if browser.movies else [],
            "shows": _titles(browser.shows.items) if browser.shows else [],
        }

    @fastapi_app.get("/search")
    async def search(q: str = "") -> dict[str, Any]:
        titles, people = await get_search_service(fastapi_app).search(q.strip())
        return {
            "titles": _titles(titles),
            "people": [person.model_dump(mode="json") for person in people],
        }

    @fastapi_app.get("/config/lists")
    async def configuration_lists() -> dict[str, Any]:
        countries, languages = await get_tmdb_client(fastapi_app).fetch_configuration_lists()
        return {
            "countries": [country.model_dump(mode="json") for country in countries],
            "languages": [language.model_dump(mode="json") for language in languages],
        }

    # Titles -----------------------------------------------------------

    @fastapi_app.get("/titles/{kind}/{title_id}")
    async def title_detail(kind: MediaKind, title_id: int) -> dict[str, Any]:
        service = get_detail_service(fastapi_app)
        seed = Title(id=title_id, media_type=kind)
        async with service.open(seed) as detail_session:
            await detail_session.load()
            if detail_session.state is LoadState.FAILED and detail_session.error is not None:
                raise detail_session.error
            await detail_session.wait_for_enrichment()
            detail = detail_session.detail
            return {
                "detail": detail.model_dump(mode="json") if detail else None,
                "director": detail_session.director_name,
                "director_credits": _titles(detail_session.director_credits),
                "collection": _titles(detail_session.collection_titles),
            }

    @fastapi_app.post("/titles/{kind}/{title_id}/prefetch", status_code=202)
    async def prefetch_title(kind: MediaKind, title_id: int) -> dict[str, str]:
        get_detail_service(fastapi_app).prefetch(title_id, kind)
        return {"status": "scheduled"}

    @fastapi_app.get("/titles/tv/{show_id}/seasons/{season_number}")
    async def season_detail(show_id: int, season_number: int) -> dict[str, Any]:
        season = await get_tmdb_client(fastapi_app).fetch_season(show_id, season_number)
        return season.model_dump(mode="json")

    @fastapi_app.get("/people/{person_id}")
    async def person_detail(person_id: int) -> dict[str, Any]:
        client = get_tmdb_client(fastapi_app)
        person = await client.fetch_person_details(person_id)
        credits = await client.fetch_director_credits(person_id)
        return {"person": person.model_dump(mode="json"), "credits": _titles(credits)}

    # Library ----------------------------------------------------------

    @fastapi_app.get("/library")
    async def library_overview() -> dict[str, Any]:
        store = get_library_store(fastapi_app)
        stats = await store.get_stats()
        return {
            "watchlist": _entries(await store.get_watchlist()),
            "watched": _entries(await store.get_watched()),
            "rated": _entries(await store.get_rated()),
            "stats": {"watchlist": stats.watchlist, "watched": stats.watched, "rated": stats.rated},
        }

    def _entry_or_removed(item: Any) -> dict[str, Any]:
        if item is None:
            return {"removed": True}
        return {"removed": False, "item": LibraryEntry.model_validate(item).model_dump(mode="json")}

    @fastapi_app.post("/library/watchlist")
    async def toggle_watchlist(title: Title) -> dict[str, Any]:
        try:
            item = await get_library_store(fastapi_app).toggle_watchlist(title)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _entry_or_removed(item)

    @fastapi_app.post("/library/watched")
    async def toggle_watched(title: Title) -> dict[str, Any]:
        try:
            item = await get_library_store(fastapi_app).toggle_watched(title)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _entry_or_removed(item)

    @fastapi_app.put("/library/rating")
    async def set_rating(payload: RatingPayload) -> dict[str, Any]:
        try:
            item = await get_library_store(fastapi_app).set_rating(payload.title, payload.rating)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _entry_or_removed(item)

    @fastapi_app.post("/library/shows/{show_id}/seasons/{season}/episodes/{episode}")
    async def toggle_episode(
        show_id: int, season: int, episode: int
    ) -> dict[str, bool]:
        watched = await get_library_store(fastapi_app).toggle_episode_watched(
            show_id, season, episode
        )
        return {"watched": watched}

    @fastapi_app.put("/library/shows/{show_id}/seasons/{season}/episodes/{episode}")
    async def update_episode(
        show_id: int, season: int, episode: int, payload: EpisodePayload
    ) -> dict[str, bool]:
        store = get_library_store(fastapi_app)
        await store.mark_episode_watched(
            show_id, season, episode, episode_name=payload.name, still_path=payload.still_path
        )
        await store.update_episode_metadata(
            show_id, season, episode, name=payload.name, still_path=payload.still_path
        )
        return {"watched": True}

    @fastapi_app.post("/library/shows/{show_id}/seasons/{season}")
    async def mark_season(show_id: int, season: int, payload: SeasonPayload) -> dict[str, int]:
        store = get_library_store(fastapi_app)
        await store.mark_season_watched(show_id, season, payload.episodes or [])
        return {"watched": await store.get_season_progress(show_id, season)}

    @fastapi_app.delete("/library/shows/{show_id}/seasons/{season}")
    async def unmark_season(show_id: int, season: int) -> dict[str, int]:
        store = get_library_store(fastapi_app)
        await store.unmark_season_watched(show_id, season)
        return {"watched": await store.get_season_progress(show_id, season)}

    @fastapi_app.get("/library/shows")
    async def shows_in_progress() -> dict[str, list[int]]:
        return {"show_ids": await get_library_store(fastapi_app).get_shows_in_progress()}

    @fastapi_app.get("/library/shows/{show_id}/progress")
    async def show_progress(show_id: int) -> dict[str, Any]:
        store = get_library_store(fastapi_app)
        latest = await store.get_latest_watched_episode(show_id)
        return {
            "watched": await store.get_show_progress(show_id),
            "latest": {"season": latest.season, "episode": latest.episode} if latest else None,
        }

    @fastapi_app.get("/library/shows/{show_id}/next")
    async def next_episode(show_id: int) -> dict[str, Any]:
        target = await find_next_episode(
            get_library_store(fastapi_app), get_tmdb_client(fastapi_app), show_id
        )
        if target is None:
            return {"next": None}
        return {
            "next": {
                "season": target.season,
                "episode": target.episode,
                "details": target.details.model_dump(mode="json") if target.details else None,
            }
        }

    # Saved titles -----------------------------------------------------

    @fastapi_app.get("/saved")
    async def saved_titles() -> dict[str, Any]:
        return {"titles": _titles(await get_library_store(fastapi_app).get_saved_titles())}

    @fastapi_app.post("/saved")
    async def save_title(title: Title) -> dict[str, str]:
        try:
            await get_library_store(fastapi_app).save_title(title)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"status": "saved"}

    @fastapi_app.delete("/saved/{kind}/{title_id}")
    async def remove_saved(kind: MediaKind, title_id: int) -> dict[str, str]:
        await get_library_store(fastapi_app).remove_saved_title(title_id, kind)
        return {"status": "removed"}


app = create_app()
