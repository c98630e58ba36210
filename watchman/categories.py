"""Curated discovery shelves and the browsable genre table."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .services.tmdb import DiscoverFilters

CategoryScope = Literal["movie", "tv", "shared"]


@dataclass(frozen=True)
class CategoryConfig:
    """Describes one themed shelf built from a ``/discover`` query."""

    title: str
    subtitle: str
    scope: CategoryScope
    keywords: str | None = None
    genres: str | None = None
    exclude_genres: str | None = None
    language: str | None = None
    origin_country: str | None = None
    vote_average_min: float | None = None
    vote_count_min: int | None = None
    vote_count_max: int | None = None
    release_date_gte: str | None = None
    release_date_lte: str | None = None
    runtime_lte: int | None = None
    max_seasons: int | None = None

    def applies_to(self, kind: str) -> bool:
        return self.scope == "shared" or self.scope == kind

    @property
    def primary_genre_id(self) -> int | None:
        """Only the first of a comma-separated genre list is queried."""

        if not self.genres:
            return None
        head = self.genres.split(",", 1)[0].strip()
        return int(head) if head.isdigit() else None

    def to_filters(self) -> DiscoverFilters:
        return DiscoverFilters(
            genre_id=self.primary_genre_id,
            keywords=self.keywords,
            exclude_genres=self.exclude_genres,
            original_language=self.language,
            origin_country=self.origin_country,
            vote_average_min=self.vote_average_min,
            vote_count_min=self.vote_count_min,
            vote_count_max=self.vote_count_max,
            release_date_gte=self.release_date_gte,
            release_date_lte=self.release_date_lte,
            runtime_lte=self.runtime_lte,
        )


MOVIE_CATEGORIES: tuple[CategoryConfig, ...] = (
    CategoryConfig(
        title="Festival Favorites",
        subtitle="Hidden gems from film festivals",
        scope="movie",
        keywords="207474",
    ),
    CategoryConfig(
        title="Cult Classics",
        subtitle="Fan-favorite oddballs",
        scope="movie",
        keywords="15060",
    ),
    CategoryConfig(
        title="Feel-Good Movies",
        subtitle="Heartwarming comfort watches",
        scope="movie",
        keywords="9799",
        genres="35,10749",
        vote_average_min=6.5,
        vote_count_min=100,
    ),
    CategoryConfig(
        title="Slow Burn Thrillers",
        subtitle="Tension that builds gradually",
        scope="movie",
        keywords="207265",
        genres="53",
    ),
    CategoryConfig(
        title="Short & Sweet",
        subtitle="Under 100 minutes",
        scope="movie",
        vote_average_min=6.5,
        vote_count_min=500,
        runtime_lte=100,
    ),
    CategoryConfig(
        title="Critics' Darlings",
        subtitle="High rating, lower popularity",
        scope="movie",
        vote_average_min=7.5,
        vote_count_min=50,
        vote_count_max=500,
    ),
    CategoryConfig(
        title="90s Nostalgia",
        subtitle="Released between 1990-1999",
        scope="movie",
        vote_average_min=6.5,
        vote_count_min=500,
        release_date_gte="1990-01-01",
        release_date_lte="1999-12-31",
    ),
    CategoryConfig(
        title="2000s Throwback",
        subtitle="Released between 2000-2009",
        scope="movie",
        vote_average_min=6.5,
        vote_count_min=500,
        release_date_gte="2000-01-01",
        release_date_lte="2009-12-31",
    ),
    CategoryConfig(
        title="Family Time",
        subtitle="Family-friendly picks",
        scope="movie",
        genres="10751",
        vote_average_min=6.0,
        vote_count_min=100,
    ),
    CategoryConfig(
        title="Mind-Bending",
        subtitle="Twisty, high-concept stories",
        scope="movie",
        keywords="310",
    ),
    CategoryConfig(
        title="Underrated Gems",
        subtitle="Decent rating with low vote count",
        scope="movie",
        vote_average_min=6.5,
        vote_count_min=50,
        vote_count_max=1000,
    ),
    CategoryConfig(
        title="International Hits",
        subtitle="High-rated non-English titles",
        scope="movie",
        language="fr|de|es|it|pt|ja|ko|zh|hi",
        vote_average_min=7.0,
        vote_count_min=500,
    ),
)

TV_CATEGORIES: tuple[CategoryConfig, ...] = (
    CategoryConfig(
        title="Comfort Binge",
        subtitle="Easy-to-watch episodic shows",
        scope="tv",
        keywords="288414",
    ),
    CategoryConfig(
        title="Mini-Series Spotlight",
        subtitle="Limited series only",
        scope="tv",
        keywords="10714",
        max_seasons=1,
    ),
    CategoryConfig(
        title="Underrated Series",
        subtitle="High rating, low popularity",
        scope="tv",
        vote_average_min=7.5,
        vote_count_min=50,
        vote_count_max=500,
    ),
    CategoryConfig(
        title="Slow Burn Series",
        subtitle="Long-form, serialized storytelling",
        scope="tv",
        keywords="207265",
    ),
    CategoryConfig(
        title="Feel-Good TV",
        subtitle="Lighthearted, uplifting shows",
        scope="tv",
        keywords="9799",
        genres="35",
        vote_average_min=6.5,
        vote_count_min=100,
    ),
    CategoryConfig(
        title="Crime & Mystery",
        subtitle="Detective and investigation series",
        scope="tv",
        genres="80,9648",
        vote_count_min=100,
    ),
    CategoryConfig(
        title="K-Drama Corner",
        subtitle="Korean dramas",
        scope="tv",
        language="ko",
        origin_country="KR",
    ),
    CategoryConfig(
        title="Sitcom Classics",
        subtitle="Comedy shows with many seasons",
        scope="tv",
        genres="35",
        vote_average_min=7.0,
        vote_count_min=500,
    ),
    CategoryConfig(
        title="Docu-Series",
        subtitle="Non-fiction and true-story series",
        scope="tv",
        genres="99",
        vote_count_min=50,
    ),
    CategoryConfig(
        title="Family Watchlist",
        subtitle="Family-appropriate series",
        scope="tv",
        genres="10751",
        vote_average_min=6.0,
        vote_count_min=100,
    ),
    CategoryConfig(
        title="Hidden Gems",
        subtitle="Vote count floor + mid popularity",
        scope="tv",
        vote_average_min=7.0,
        vote_count_min=100,
        vote_count_max=1000,
    ),
)

SHARED_CATEGORIES: tuple[CategoryConfig, ...] = (
    CategoryConfig(
        title="Asian Cinema",
        subtitle="Best from the East",
        scope="shared",
        language="ja|ko|zh|hi|th",
    ),
    CategoryConfig(
        title="Anime",
        subtitle="Japanese Animation",
        scope="shared",
        genres="16",
        language="ja",
    ),
    CategoryConfig(
        title="Superhero",
        subtitle="Heroes and Villains",
        scope="shared",
        keywords="9715",
    ),
    CategoryConfig(
        title="Adult Animation",
        subtitle="Not for kids",
        scope="shared",
        genres="16",
        exclude_genres="10751",
    ),
    CategoryConfig(
        title="Award Winning",
        subtitle="Critically Acclaimed",
        scope="shared",
        vote_average_min=8.0,
        vote_count_min=1000,
    ),
    CategoryConfig(
        title="Real Life",
        subtitle="Based on true stories",
        scope="shared",
        keywords="9672",
    ),
    CategoryConfig(
        title="Blockbuster",
        subtitle="Big budget hits",
        scope="shared",
        keywords="187056",
    ),
    CategoryConfig(
        title="Biographical",
        subtitle="Life stories",
        scope="shared",
        keywords="6092",
    ),
)

CATEGORY_CONFIGS: tuple[CategoryConfig, ...] = (
    *MOVIE_CATEGORIES,
    *TV_CATEGORIES,
    *SHARED_CATEGORIES,
)


def configs_for(
    kind: str, configs: tuple[CategoryConfig, ...] = CATEGORY_CONFIGS
) -> list[CategoryConfig]:
    """Return the shelves shown for ``kind``, kind-specific ones first."""

    specific = [config for config in configs if config.scope == kind]
    shared = [config for config in configs if config.scope == "shared"]
    return specific + shared


@dataclass(frozen=True)
class BrowseGenre:
    """A browsable genre; some movie genres map to a different TV id."""

    id: int
    name: str
    tv_id: int | None = None

    def id_for(self, kind: str | None) -> int:
        if kind == "tv" and self.tv_id is not None:
            return self.tv_id
        return self.id


GENRES: tuple[BrowseGenre, ...] = (
    BrowseGenre(28, "Action", tv_id=10759),
    BrowseGenre(12, "Adventure", tv_id=10759),
    BrowseGenre(16, "Animation"),
    BrowseGenre(35, "Comedy"),
    BrowseGenre(80, "Crime"),
    BrowseGenre(99, "Documentary"),
    BrowseGenre(18, "Drama"),
    BrowseGenre(10751, "Family"),
    BrowseGenre(14, "Fantasy", tv_id=10765),
    BrowseGenre(36, "History"),
    BrowseGenre(27, "Horror"),
    BrowseGenre(10402, "Music"),
    BrowseGenre(9648, "Mystery"),
    BrowseGenre(10749, "Romance"),
    BrowseGenre(878, "Science Fiction", tv_id=10765),
    BrowseGenre(10770, "TV Movie"),
    BrowseGenre(53, "Thriller"),
    BrowseGenre(10752, "War", tv_id=10768),
    BrowseGenre(37, "Western"),
)


def find_genre(genre_id: int) -> BrowseGenre | None:
    return next((genre for genre in GENRES if genre.id == genre_id), None)
