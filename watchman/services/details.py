"""Combined title detail fetching, prefetching and per-title enrichment."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Callable, Iterable

from pydantic import BaseModel, Field

from ..certification import resolve_embedded_certification
from ..config import Settings
from ..errors import TMDBError
from ..models import (
    Cast,
    Credits,
    Crew,
    DetailEnvelope,
    Episode,
    MediaKind,
    ProviderItem,
    Review,
    Title,
    Video,
)
from ..utils import filter_titles
from .cache import ResponseCache
from .ratings import RandomRatingSynthesizer, RatingSynthesizer, apply_scores
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)

DIRECTOR_JOB = "Director"
SHOWRUNNER_JOBS = frozenset({"Executive Producer", "Creator"})


class LoadState(str, Enum):
    LOADING = "loading"
    SUCCESS = "success"
    FAILED = "failed"


class TitleDetail(BaseModel):
    """Everything the detail screen needs, extracted from one envelope."""

    title: Title
    cast: list[Cast] = Field(default_factory=list)
    crew: list[Crew] = Field(default_factory=list)
    videos: list[Video] = Field(default_factory=list)
    reviews: list[Review] = Field(default_factory=list)
    recommendations: list[Title] = Field(default_factory=list)
    providers: list[ProviderItem] = Field(default_factory=list)


def find_key_creator(crew: Iterable[Crew]) -> Crew | None:
    """Return the director, or for shows the first creator/executive producer."""

    members = list(crew)
    director = next((member for member in members if member.job == DIRECTOR_JOB), None)
    if director is not None:
        return director
    return next((member for member in members if member.job in SHOWRUNNER_JOBS), None)


def merge_cast(series_cast: Iterable[Cast], season_cast: Iterable[Cast]) -> list[Cast]:
    """Append season-only actors after the series billing order."""

    merged = list(series_cast)
    known = {member.id for member in merged}
    for member in season_cast:
        if member.id in known:
            continue
        known.add(member.id)
        merged.append(member)
    return merged


class DetailService:
    """Owns the combined-title cache entries and their in-flight requests."""

    def __init__(
        self,
        settings: Settings,
        client: TMDBClient,
        synthesizer: RatingSynthesizer | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._synthesizer = synthesizer or RandomRatingSynthesizer()
        self._inflight: dict[str, asyncio.Task[DetailEnvelope]] = {}

    @property
    def client(self) -> TMDBClient:
        return self._client

    @property
    def cache(self) -> ResponseCache:
        return self._client.cache

    async def fetch_full_detail(self, title_id: int, kind: MediaKind) -> DetailEnvelope:
        """Return the combined detail envelope, hitting the network at most once."""

        key = ResponseCache.full_title_key(title_id, kind)
        cached = self.cache.full_titles.get(key)
        if cached is not None:
            return cached
        task = self._start_fetch(key, title_id, kind)
        # Shielded so a cancelled caller does not abort a fetch others joined.
        return await asyncio.shield(task)

    def prefetch(self, title_id: int, kind: MediaKind) -> None:
        """Warm the cache in the background; failures are absorbed."""

        key = ResponseCache.full_title_key(title_id, kind)
        if key in self.cache.full_titles or key in self._inflight:
            return
        self._start_fetch(key, title_id, kind)

    def is_pending(self, title_id: int, kind: MediaKind) -> bool:
        return ResponseCache.full_title_key(title_id, kind) in self._inflight

    async def drain(self) -> None:
        """Wait for every in-flight fetch, ignoring their outcome."""

        if self._inflight:
            await asyncio.gather(*list(self._inflight.values()), return_exceptions=True)

    async def aclose(self) -> None:
        tasks = list(self._inflight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _start_fetch(
        self, key: str, title_id: int, kind: MediaKind
    ) -> asyncio.Task[DetailEnvelope]:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._fetch_and_store(key, title_id, kind))
            self._inflight[key] = task
            task.add_done_callback(partial(self._finish_fetch, key))
        return task

    async def _fetch_and_store(
        self, key: str, title_id: int, kind: MediaKind
    ) -> DetailEnvelope:
        try:
            envelope = await self._client.fetch_combined_title(title_id, kind)
            self.cache.full_titles.put(key, envelope)
            return envelope
        finally:
            # Leave the map before the outcome is published so a caller
            # arriving after a failure starts a fresh request.
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    def _finish_fetch(self, key: str, task: asyncio.Task[DetailEnvelope]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if task.cancelled():
            return
        exc = task.exception()
        if isinstance(exc, TMDBError):
            logger.debug("Full title fetch for %s failed: %s", key, exc)
        elif exc is not None:
            logger.error("Full title fetch for %s crashed", key, exc_info=exc)

    def build_detail(self, envelope: DetailEnvelope) -> TitleDetail:
        """Reconcile a combined envelope into the detail domain model."""

        title = envelope.to_title()
        title.certification = resolve_embedded_certification(
            envelope.release_dates.results if envelope.release_dates else None,
            envelope.content_ratings.results if envelope.content_ratings else None,
            country=self._settings.certification_country,
        )
        apply_scores(title, self._synthesizer.synthesize(envelope.vote_average))

        credits = envelope.credits or Credits()
        providers = (
            envelope.watch_providers.subscription_offers(self._settings.watch_provider_region)
            if envelope.watch_providers
            else []
        )
        return TitleDetail(
            title=title,
            cast=credits.cast,
            crew=credits.crew,
            videos=envelope.videos.results if envelope.videos else [],
            reviews=envelope.reviews.results if envelope.reviews else [],
            recommendations=filter_titles(
                envelope.recommendations.results if envelope.recommendations else []
            ),
            providers=providers,
        )

    def open(self, title: Title) -> "TitleDetailSession":
        return TitleDetailSession(self, title)


class TitleDetailSession:
    """State for one opened title, owning its background enrichment tasks.

    Use as an async context manager (or call :meth:`close`) so enrichment
    that nobody will read anymore is cancelled.
    """

    def __init__(self, service: DetailService, title: Title) -> None:
        self._service = service
        self.title = title
        self.kind: MediaKind = title.media_kind
        self.state = LoadState.LOADING
        self.error: Exception | None = None
        self.detail: TitleDetail | None = None

        self.cast: list[Cast] = []
        self.crew: list[Crew] = []
        self.director_name: str | None = None
        self.director_credits: list[Title] = []
        self.collection_titles: list[Title] = []

        self.selected_season: int | None = None
        self.episodes: list[Episode] = []

        self._series_cast: list[Cast] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    async def __aenter__(self) -> "TitleDetailSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def load(self) -> None:
        """Fetch the combined detail and kick off secondary lookups."""

        title_id = self.title.id
        if title_id is None:
            return
        self.state = LoadState.LOADING
        self.error = None
        try:
            envelope = await self._service.fetch_full_detail(title_id, self.kind)
        except TMDBError as exc:
            logger.warning("Failed to load title details for %s: %s", title_id, exc)
            self.state = LoadState.FAILED
            self.error = exc
            return

        detail = self._service.build_detail(envelope)
        self.detail = detail
        self.title = detail.title
        self._series_cast = list(detail.cast)
        self.cast = list(detail.cast)
        self.crew = list(detail.crew)
        self.state = LoadState.SUCCESS
        self._start_enrichment()

    retry = load

    def _start_enrichment(self) -> None:
        client = self._service.client
        creator = find_key_creator(self.crew)
        if creator is not None:
            self.director_name = creator.name
            self._spawn(
                client.fetch_director_credits(creator.id),
                self._apply_director_credits,
                "Director credits",
            )
        collection = self.title.belongs_to_collection
        if collection is not None:
            self._spawn(
                client.fetch_collection(collection.id),
                self._apply_collection,
                "Collection",
            )

    def _apply_director_credits(self, credits: list[Title]) -> None:
        self.director_credits = filter_titles(credits)

    def _apply_collection(self, parts: list[Title]) -> None:
        self.collection_titles = [
            part for part in filter_titles(parts) if part.id != self.title.id
        ]

    def _spawn(
        self,
        coro: Awaitable[Any],
        apply: Callable[[Any], None],
        label: str,
    ) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)

        def _done(finished: asyncio.Task[Any]) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if isinstance(exc, TMDBError):
                logger.info("%s lookup failed for title %s: %s", label, self.title.id, exc)
                return
            if exc is not None:
                logger.error("%s lookup crashed for title %s", label, self.title.id, exc_info=exc)
                return
            if not self._closed:
                apply(finished.result())

        task.add_done_callback(_done)

    async def select_season(self, season_number: int) -> None:
        """Load a season's episodes and fold its cast into the series cast."""

        title_id = self.title.id
        if title_id is None:
            return
        self.selected_season = season_number
        try:
            season = await self._service.client.fetch_season(title_id, season_number)
        except TMDBError as exc:
            logger.warning(
                "Failed to fetch episodes/cast for season %s of %s: %s",
                season_number,
                title_id,
                exc,
            )
            return
        if self.selected_season != season_number:
            return
        self.episodes = season.episodes
        self.cast = merge_cast(self._series_cast, season.cast)

    async def wait_for_enrichment(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel enrichment that is still running."""

        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
