"""Fan-out of the curated discovery shelves."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Sequence

from ..categories import CATEGORY_CONFIGS, CategoryConfig, configs_for
from ..errors import TMDBError
from ..models import CategorySection, MediaKind, Title
from ..utils import filter_titles
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryResult:
    movie_sections: list[CategorySection] = field(default_factory=list)
    tv_sections: list[CategorySection] = field(default_factory=list)


class CategoryDiscovery:
    """Build every discovery shelf for movies, then for shows."""

    def __init__(
        self,
        client: TMDBClient,
        configs: Sequence[CategoryConfig] = CATEGORY_CONFIGS,
    ) -> None:
        self._client = client
        self._configs = tuple(configs)

    async def discover(self) -> DiscoveryResult:
        movie_sections = await self.discover_kind("movie")
        tv_sections = await self.discover_kind("tv")
        return DiscoveryResult(movie_sections=movie_sections, tv_sections=tv_sections)

    async def discover_kind(self, kind: MediaKind) -> list[CategorySection]:
        """Fetch every shelf applicable to ``kind`` concurrently.

        A failing shelf is logged and skipped. Sections come back in
        configuration order regardless of which request finished first.
        """

        configs = configs_for(kind, self._configs)
        results = await asyncio.gather(
            *(self.fetch_category(config, kind) for config in configs),
            return_exceptions=True,
        )
        sections: list[CategorySection] = []
        for config, result in zip(configs, results):
            if isinstance(result, Exception):
                logger.warning("Failed to fetch %s category %s: %s", kind, config.title, result)
                continue
            if result is not None:
                sections.append(result)

        order = {config.title: index for index, config in enumerate(configs)}
        sections.sort(key=lambda section: order.get(section.title, 0))
        return sections

    async def fetch_category(
        self, config: CategoryConfig, kind: MediaKind
    ) -> CategorySection | None:
        titles = await self._client.fetch_titles("discover", kind, filters=config.to_filters())
        if config.max_seasons is not None:
            titles = await self._limit_seasons(titles, kind, config.max_seasons)
        items = filter_titles(titles)
        if not items:
            return None
        return CategorySection(title=config.title, subtitle=config.subtitle, items=items)

    async def _limit_seasons(
        self, titles: list[Title], kind: MediaKind, max_seasons: int
    ) -> list[Title]:
        """Keep titles with at most ``max_seasons``, looking up unknown counts."""

        kept: list[Title] = []
        unknown: list[int] = []
        for title in titles:
            if title.number_of_seasons is None:
                if title.id is not None:
                    unknown.append(title.id)
                continue
            if title.number_of_seasons <= max_seasons:
                kept.append(title)

        if not unknown:
            return kept

        details = await asyncio.gather(
            *(self._client.fetch_title_details(kind, title_id) for title_id in unknown),
            return_exceptions=True,
        )
        verified: list[Title] = []
        for title_id, detail in zip(unknown, details):
            if isinstance(detail, TMDBError):
                logger.debug("Season count lookup for %s failed: %s", title_id, detail)
                continue
            if isinstance(detail, BaseException):
                raise detail
            if detail.number_of_seasons is not None and detail.number_of_seasons <= max_seasons:
                verified.append(detail)
        # Detail payloads carry relative posters; match the list results.
        kept.extend(self._client.resolve_posters(verified))
        return kept
