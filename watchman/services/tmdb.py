"""Client for The Movie Database (TMDB) REST API."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Literal, Mapping, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..certification import (
    resolve_embedded_certification,
    resolve_movie_certification,
    resolve_tv_certification,
)
from ..config import Settings
from ..errors import (
    BadResponseError,
    MissingConfigError,
    NotFoundError,
    RateLimitedError,
    UrlBuildError,
)
from ..models import (
    CollectionDetail,
    CombinedCredits,
    ContentRatingsBlock,
    Country,
    Credits,
    DetailEnvelope,
    Episode,
    Language,
    MediaKind,
    Person,
    PersonDetail,
    PersonPage,
    ReleaseDatesBlock,
    Review,
    ReviewPage,
    SeasonDetail,
    Title,
    TitlePage,
    Video,
    VideoPage,
    WatchProviders,
)
from ..utils import resolve_poster_paths
from .cache import ResponseCache

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

ResourceFamily = Literal[
    "trending",
    "top_rated",
    "upcoming",
    "now_playing",
    "popular",
    "airing_today",
    "on_the_air",
    "search",
    "discover",
]

LIST_FAMILIES = frozenset(
    {"top_rated", "upcoming", "now_playing", "popular", "airing_today", "on_the_air"}
)
FAMILIES = LIST_FAMILIES | {"trending", "search", "discover"}
QUERY_KINDS = frozenset({"movie", "tv", "multi"})

DEFAULT_SORT = "popularity.desc"
FULL_TITLE_APPENDS = (
    "credits",
    "images",
    "videos",
    "recommendations",
    "reviews",
    "watch/providers",
)
CREDIT_JOBS = frozenset({"Director", "Creator"})


@dataclass(slots=True)
class DiscoverFilters:
    """Optional ``/discover`` filters; ``None`` means "not constrained"."""

    genre_id: int | None = None
    keywords: str | None = None
    exclude_genres: str | None = None
    original_language: str | None = None
    origin_country: str | None = None
    vote_average_min: float | None = None
    vote_count_min: int | None = None
    vote_count_max: int | None = None
    release_date_gte: str | None = None
    release_date_lte: str | None = None
    runtime_lte: int | None = None
    sort_by: str | None = None


def full_title_appends(kind: str) -> str:
    """Return the ``append_to_response`` list for a combined title fetch."""

    extra = "release_dates" if kind == "movie" else "content_ratings"
    return ",".join((*FULL_TITLE_APPENDS, extra))


class TMDBClient:
    """Thin wrapper around the TMDB v3 HTTP API.

    List endpoints are always fetched fresh. Detail lookups that are revisited
    within a session (person credits, collections, seasons, episodes and the
    configuration lists) read through the injected :class:`ResponseCache`.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        cache: ResponseCache | None = None,
    ) -> None:
        self._settings = settings
        self._client = http_client
        self.cache = cache if cache is not None else ResponseCache()
        self._retry_delay = 0.5

    # Request building -------------------------------------------------

    def build_request(
        self,
        family: str,
        kind: str,
        *,
        query: str | None = None,
        year: int | None = None,
        filters: DiscoverFilters | None = None,
        page: int = 1,
    ) -> tuple[str, dict[str, str]]:
        """Return the URL and query parameters for a list-style request."""

        base_url = self._base_url()
        params = self._auth_params()

        if family not in FAMILIES:
            raise UrlBuildError(f"Unknown resource family: {family!r}")
        if kind not in QUERY_KINDS:
            raise UrlBuildError(f"Unknown media kind: {kind!r}")

        if family == "trending":
            # TMDB has no "multi" trending list; "all" is the equivalent.
            path = f"trending/{'all' if kind == 'multi' else kind}/day"
        elif family in LIST_FAMILIES:
            if kind == "multi":
                raise UrlBuildError(f"{family} requires a movie or tv kind")
            path = f"{kind}/{family}"
        elif family == "search":
            path = f"search/{kind}"
        else:
            if kind == "multi":
                raise UrlBuildError("discover requires a movie or tv kind")
            path = f"discover/{kind}"

        params["page"] = str(page)
        if query is not None:
            params["query"] = query

        if year is not None:
            if kind == "movie":
                params["primary_release_year"] = str(year)
            elif kind == "tv":
                params["first_air_date_year"] = str(year)
            params["sort_by"] = DEFAULT_SORT

        filters = filters or DiscoverFilters()
        if family == "discover":
            params.update(self._discover_params(kind, filters))
        elif filters.genre_id is not None:
            params["with_genres"] = str(filters.genre_id)

        return f"{base_url}/{path}", params

    @staticmethod
    def _discover_params(kind: str, filters: DiscoverFilters) -> dict[str, str]:
        date_field = "primary_release_date" if kind == "movie" else "first_air_date"
        candidates: dict[str, object | None] = {
            "sort_by": filters.sort_by or DEFAULT_SORT,
            "with_genres": filters.genre_id,
            "with_keywords": filters.keywords,
            "without_genres": filters.exclude_genres,
            "with_original_language": filters.original_language,
            "vote_average.gte": filters.vote_average_min,
            "vote_count.gte": filters.vote_count_min,
            "vote_count.lte": filters.vote_count_max,
            "with_origin_country": filters.origin_country,
            f"{date_field}.gte": filters.release_date_gte,
            f"{date_field}.lte": filters.release_date_lte,
            "with_runtime.lte": filters.runtime_lte,
        }
        return {key: str(value) for key, value in candidates.items() if value is not None}

    def _base_url(self) -> str:
        base_url = self._settings.tmdb_base_url
        if not base_url:
            raise MissingConfigError("TMDB base URL is not configured")
        return base_url

    def _auth_params(self) -> dict[str, str]:
        if not self._settings.tmdb_api_key:
            raise MissingConfigError("TMDB API key is not configured")
        return {"api_key": self._settings.tmdb_api_key}

    # Transport --------------------------------------------------------

    async def _get_json(self, path: str, params: Mapping[str, str] | None = None) -> Any:
        """GET ``path`` relative to the API root and return the decoded JSON."""

        url = f"{self._base_url()}/{path.lstrip('/')}"
        query = self._auth_params()
        if params:
            query.update(params)
        return await self._request(url, query)

    async def _request(self, url: str, params: Mapping[str, str]) -> Any:
        attempt = 0
        while True:
            try:
                response = await self._client.get(url, params=params)
            except httpx.TransportError as exc:
                attempt += 1
                if attempt <= self._settings.max_retries:
                    backoff = min(2 ** (attempt - 1), 5) * self._retry_delay
                    logger.info(
                        "Transient error talking to TMDB (%s). Retrying in %.1fs",
                        exc.__class__.__name__,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise BadResponseError(f"Transport failure: {exc}") from exc
            break

        path = response.request.url.path
        status = response.status_code
        if status == 404:
            raise NotFoundError(path)
        if status == 429:
            raise RateLimitedError(_parse_retry_after(response.headers.get("Retry-After")))
        if status != 200:
            logger.warning("TMDB request %s failed: HTTP %s", path, status)
            raise BadResponseError(response.text[:200] or "Unexpected status", status_code=status)
        try:
            return response.json()
        except ValueError as exc:
            raise BadResponseError("Response body is not JSON", status_code=status) from exc

    async def _get_model(
        self, model: type[ModelT], path: str, params: Mapping[str, str] | None = None
    ) -> ModelT:
        payload = await self._get_json(path, params)
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Could not decode %s payload from %s", model.__name__, path)
            raise BadResponseError(
                f"Could not decode {model.__name__}: {exc.error_count()} errors",
                status_code=200,
            ) from exc

    # List families ----------------------------------------------------

    async def fetch_titles(
        self,
        family: str,
        kind: str,
        *,
        query: str | None = None,
        year: int | None = None,
        filters: DiscoverFilters | None = None,
        page: int = 1,
    ) -> list[Title]:
        """Fetch one page of a list-style resource family."""

        url, params = self.build_request(
            family, kind, query=query, year=year, filters=filters, page=page
        )
        payload = await self._request(url, params)
        try:
            titles = TitlePage.model_validate(payload).results
        except ValidationError as exc:
            raise BadResponseError(
                f"Could not decode {family} results: {exc.error_count()} errors",
                status_code=200,
            ) from exc
        self.resolve_posters(titles)
        return titles

    def resolve_posters(self, titles: list[Title]) -> list[Title]:
        """Rewrite relative poster paths to CDN URLs in place."""

        resolve_poster_paths(titles, self._settings.poster_base_url)
        return titles

    # Title details ----------------------------------------------------

    async def fetch_combined_title(self, title_id: int, kind: MediaKind) -> DetailEnvelope:
        """Fetch a title with every sub-resource appended in one round-trip."""

        return await self._get_model(
            DetailEnvelope,
            f"{kind}/{title_id}",
            {
                "append_to_response": full_title_appends(kind),
                "include_image_language": "en,null",
            },
        )

    async def fetch_title_details(self, kind: MediaKind, title_id: int) -> Title:
        """Fetch core details plus images and certification for one title."""

        envelope = await self._get_model(
            DetailEnvelope,
            f"{kind}/{title_id}",
            {
                "append_to_response": "images,release_dates,content_ratings",
                "include_image_language": "en,null",
            },
        )
        title = envelope.to_title()
        title.certification = resolve_embedded_certification(
            envelope.release_dates.results if envelope.release_dates else None,
            envelope.content_ratings.results if envelope.content_ratings else None,
            country=self._settings.certification_country,
        )
        return title

    async def fetch_movie_certification(self, title_id: int) -> str:
        block = await self._get_model(ReleaseDatesBlock, f"movie/{title_id}/release_dates")
        return resolve_movie_certification(
            block.results, country=self._settings.certification_country
        )

    async def fetch_tv_certification(self, title_id: int) -> str:
        block = await self._get_model(ContentRatingsBlock, f"tv/{title_id}/content_ratings")
        return resolve_tv_certification(
            block.results, country=self._settings.certification_country
        )

    async def fetch_watch_providers(self, kind: MediaKind, title_id: int) -> WatchProviders:
        return await self._get_model(WatchProviders, f"{kind}/{title_id}/watch/providers")

    async def fetch_credits(self, kind: MediaKind, title_id: int) -> Credits:
        return await self._get_model(Credits, f"{kind}/{title_id}/credits")

    async def fetch_reviews(self, kind: MediaKind, title_id: int) -> list[Review]:
        return (await self._get_model(ReviewPage, f"{kind}/{title_id}/reviews")).results

    async def fetch_videos(self, kind: MediaKind, title_id: int) -> list[Video]:
        return (await self._get_model(VideoPage, f"{kind}/{title_id}/videos")).results

    async def fetch_recommendations(self, kind: MediaKind, title_id: int) -> list[Title]:
        page = await self._get_model(TitlePage, f"{kind}/{title_id}/recommendations")
        return page.results

    # People -----------------------------------------------------------

    async def fetch_trending_people(self) -> list[Person]:
        return (await self._get_model(PersonPage, "person/popular")).results

    async def search_people(self, query: str) -> list[Person]:
        if not query:
            return []
        page = await self._get_model(PersonPage, "search/person", {"query": query})
        return page.results

    async def fetch_person_details(self, person_id: int) -> PersonDetail:
        return await self._get_model(PersonDetail, f"person/{person_id}")

    async def fetch_person_credits(self, person_id: int) -> list[Title]:
        """Return a person's movie and TV credits, one entry per title.

        Acting credits are always kept. Crew credits are only kept for
        directing or creating a title the person did not also act in.
        """

        credits = await self._get_model(CombinedCredits, f"person/{person_id}/combined_credits")
        unique: dict[int, Title] = {}
        for title in credits.cast:
            if title.id is not None:
                unique.setdefault(title.id, title)
        for title in credits.crew:
            if title.id is None or title.job not in CREDIT_JOBS:
                continue
            unique.setdefault(title.id, title)
        return sorted(unique.values(), key=lambda title: title.vote_count or 0, reverse=True)

    # Cached lookups ---------------------------------------------------

    async def fetch_director_credits(self, person_id: int) -> list[Title]:
        key = self.cache.person_credits_key(person_id)
        cached = self.cache.person_credits.get(key)
        if cached is not None:
            return cached
        credits = await self.fetch_person_credits(person_id)
        self.cache.person_credits.put(key, credits)
        return credits

    async def fetch_collection(self, collection_id: int) -> list[Title]:
        """Return a collection's members with posters, oldest first."""

        key = self.cache.collection_key(collection_id)
        cached = self.cache.collections.get(key)
        if cached is not None:
            return cached
        detail = await self._get_model(CollectionDetail, f"collection/{collection_id}")
        parts = sorted(
            (part for part in detail.parts if part.poster_path),
            key=lambda part: part.release_date or "",
        )
        self.cache.collections.put(key, parts)
        return parts

    async def fetch_season(self, show_id: int, season_number: int) -> SeasonDetail:
        key = self.cache.season_key(show_id, season_number)
        cached = self.cache.seasons.get(key)
        if cached is not None:
            return cached
        season = await self._get_model(
            SeasonDetail,
            f"tv/{show_id}/season/{season_number}",
            {"append_to_response": "credits"},
        )
        self.cache.seasons.put(key, season)
        return season

    async def fetch_episode(
        self, show_id: int, season_number: int, episode_number: int
    ) -> Episode:
        key = self.cache.episode_key(show_id, season_number, episode_number)
        cached = self.cache.episodes.get(key)
        if cached is not None:
            return cached
        episode = await self._get_model(
            Episode, f"tv/{show_id}/season/{season_number}/episode/{episode_number}"
        )
        self.cache.episodes.put(key, episode)
        return episode

    async def fetch_countries(self) -> list[Country]:
        key = "config_countries"
        cached = self.cache.countries.get(key)
        if cached is not None:
            return cached
        payload = await self._get_json("configuration/countries")
        countries = sorted(
            self._validate_list(Country, payload, "configuration/countries"),
            key=lambda country: country.english_name,
        )
        self.cache.countries.put(key, countries)
        return countries

    async def fetch_languages(self) -> list[Language]:
        key = "config_languages"
        cached = self.cache.languages.get(key)
        if cached is not None:
            return cached
        payload = await self._get_json("configuration/languages")
        languages = sorted(
            self._validate_list(Language, payload, "configuration/languages"),
            key=lambda language: language.english_name,
        )
        self.cache.languages.put(key, languages)
        return languages

    async def fetch_configuration_lists(self) -> tuple[list[Country], list[Language]]:
        """Fetch the country and language lists concurrently."""

        countries, languages = await asyncio.gather(
            self.fetch_countries(), self.fetch_languages()
        )
        return countries, languages

    @staticmethod
    def _validate_list(model: type[ModelT], payload: Any, path: str) -> list[ModelT]:
        if not isinstance(payload, list):
            raise BadResponseError(f"Expected a list from {path}", status_code=200)
        try:
            return [model.model_validate(entry) for entry in payload]
        except ValidationError as exc:
            raise BadResponseError(
                f"Could not decode {model.__name__}: {exc.error_count()} errors",
                status_code=200,
            ) from exc


def _parse_retry_after(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None
