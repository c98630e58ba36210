"""Pydantic models describing TMDB payloads and the reconciled domain."""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

logger = logging.getLogger(__name__)

MediaKind = Literal["movie", "tv"]

# TMDB reports a perfect 10.0 almost exclusively for titles with a handful of
# votes, so it is treated as "no usable rating" and hidden from every list.
SENTINEL_RATING = 10.0


class TMDBModel(BaseModel):
    """Base model tolerant of unknown upstream fields."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Genre(TMDBModel):
    id: int
    name: str = ""


class Collection(TMDBModel):
    """Parent franchise a movie belongs to."""

    id: int
    name: str = ""
    poster_path: str | None = None
    backdrop_path: str | None = None


class Creator(TMDBModel):
    id: int
    name: str = ""


class ImageInfo(TMDBModel):
    file_path: str
    aspect_ratio: float | None = None
    width: int | None = None
    height: int | None = None
    iso_639_1: str | None = None
    vote_average: float | None = None


class TitleImages(TMDBModel):
    logos: list[ImageInfo] | None = None
    backdrops: list[ImageInfo] | None = None

    def best_logo(self, language: str = "en") -> ImageInfo | None:
        """Return the highest voted logo, preferring the given language."""

        logos = self.logos or []
        preferred = [logo for logo in logos if logo.iso_639_1 == language]
        candidates = preferred or logos
        if not candidates:
            return None
        return max(candidates, key=lambda logo: logo.vote_average or 0.0)


class Season(TMDBModel):
    id: int | None = None
    name: str = ""
    season_number: int
    episode_count: int | None = None
    poster_path: str | None = None
    air_date: str | None = None


class Episode(TMDBModel):
    id: int | None = None
    name: str = ""
    overview: str | None = None
    still_path: str | None = None
    episode_number: int | None = None
    season_number: int | None = None
    air_date: str | None = None


class Title(TMDBModel):
    """Canonical movie or show record.

    Exactly one of ``title`` (movies) or ``name`` (shows) is expected to be
    populated by TMDB; the media kind is inferred from that unless an explicit
    ``media_type`` came along with the payload (multi search, person credits).
    Certification and the synthetic scores are filled in after the fact by the
    detail aggregator, so instances are mutable.
    """

    id: int | None = None
    title: str | None = None
    name: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    runtime: int | None = None
    budget: int | None = None
    revenue: int | None = None
    release_date: str | None = Field(
        default=None,
        validation_alias=AliasChoices("release_date", "first_air_date"),
    )
    status: str | None = None
    vote_average: float | None = None
    vote_count: int | None = None
    genres: list[Genre] | None = None
    number_of_seasons: int | None = None
    number_of_episodes: int | None = None
    seasons: list[Season] | None = None
    media_type: str | None = None

    # Present on person combined-credit entries only.
    character: str | None = None
    job: str | None = None
    department: str | None = None

    belongs_to_collection: Collection | None = None
    images: TitleImages | None = None
    created_by: list[Creator] | None = None

    certification: str | None = None
    critics_score: int | None = None
    audience_score: int | None = None
    secondary_score: float | None = None

    @property
    def media_kind(self) -> MediaKind:
        """Return ``"tv"`` or ``"movie"`` for this record."""

        if self.media_type in ("movie", "tv"):
            return self.media_type  # type: ignore[return-value]
        return "tv" if self.name is not None else "movie"

    @property
    def display_name(self) -> str:
        return self.name or self.title or "Unknown"

    @property
    def has_sentinel_rating(self) -> bool:
        return self.vote_average == SENTINEL_RATING

    @property
    def has_poster(self) -> bool:
        return bool(self.poster_path)

    def season_entries(self) -> list[tuple[int, int]]:
        """Return ``(season_number, episode_count)`` pairs, skipping specials."""

        return [
            (season.season_number, season.episode_count or 0)
            for season in self.seasons or []
            if season.season_number > 0
        ]


class Cast(TMDBModel):
    id: int
    name: str = ""
    character: str | None = None
    profile_path: str | None = None
    order: int | None = None


class Crew(TMDBModel):
    id: int
    name: str = ""
    job: str = ""
    department: str = ""
    profile_path: str | None = None


class Credits(TMDBModel):
    id: int | None = None
    cast: list[Cast] = Field(default_factory=list)
    crew: list[Crew] = Field(default_factory=list)


class Video(TMDBModel):
    id: str
    key: str
    name: str = ""
    site: str = ""
    type: str = ""

    @property
    def youtube_url(self) -> str | None:
        if self.site != "YouTube":
            return None
        return f"https://www.youtube.com/watch?v={self.key}"


class Review(TMDBModel):
    id: str
    author: str = ""
    content: str = ""
    created_at: str | None = None
    url: str | None = None


class ProviderItem(TMDBModel):
    provider_id: int
    provider_name: str = ""
    logo_path: str | None = None
    display_priority: int = 0


class ProviderRegion(TMDBModel):
    link: str | None = None
    flatrate: list[ProviderItem] | None = None
    rent: list[ProviderItem] | None = None
    buy: list[ProviderItem] | None = None


class WatchProviders(TMDBModel):
    id: int | None = None
    results: dict[str, ProviderRegion] = Field(default_factory=dict)

    def subscription_offers(self, region: str) -> list[ProviderItem]:
        """Return the region's flatrate offers ordered by display priority."""

        block = self.results.get(region)
        if block is None or not block.flatrate:
            return []
        return sorted(block.flatrate, key=lambda item: item.display_priority)


class ReleaseDate(TMDBModel):
    certification: str = ""
    type: int = 0


class ReleaseDateGroup(TMDBModel):
    country: str = Field(validation_alias=AliasChoices("iso_3166_1", "country"))
    release_dates: list[ReleaseDate] = Field(default_factory=list)


class ContentRating(TMDBModel):
    country: str = Field(validation_alias=AliasChoices("iso_3166_1", "country"))
    rating: str = ""


class ReleaseDatesBlock(TMDBModel):
    id: int | None = None
    results: list[ReleaseDateGroup] = Field(default_factory=list)


class ContentRatingsBlock(TMDBModel):
    id: int | None = None
    results: list[ContentRating] = Field(default_factory=list)


class TitlePage(TMDBModel):
    page: int | None = None
    results: list[Title] = Field(default_factory=list)
    total_pages: int | None = None


class VideoPage(TMDBModel):
    id: int | None = None
    results: list[Video] = Field(default_factory=list)


class ReviewPage(TMDBModel):
    id: int | None = None
    page: int | None = None
    results: list[Review] = Field(default_factory=list)


class Person(TMDBModel):
    id: int
    name: str = ""
    profile_path: str | None = None
    known_for_department: str | None = None


class PersonDetail(Person):
    biography: str | None = None
    birthday: str | None = None
    deathday: str | None = None
    place_of_birth: str | None = None


class PersonPage(TMDBModel):
    results: list[Person] = Field(default_factory=list)


class CombinedCredits(TMDBModel):
    cast: list[Title] = Field(default_factory=list)
    crew: list[Title] = Field(default_factory=list)


class CollectionDetail(TMDBModel):
    id: int | None = None
    name: str | None = None
    parts: list[Title] = Field(default_factory=list)


class Country(TMDBModel):
    iso_3166_1: str
    english_name: str = ""
    native_name: str | None = None


class Language(TMDBModel):
    iso_639_1: str
    english_name: str = ""
    name: str | None = None


class SeasonDetail(TMDBModel):
    id: int | None = None
    episodes: list[Episode] = Field(default_factory=list)
    credits: Credits | None = None

    @property
    def cast(self) -> list[Cast]:
        return self.credits.cast if self.credits else []


_APPENDED_BLOCKS = (
    "credits",
    "images",
    "videos",
    "reviews",
    "recommendations",
    "release_dates",
    "content_ratings",
    "watch_providers",
)


class DetailEnvelope(TMDBModel):
    """A title detail response carrying ``append_to_response`` sub-resources."""

    id: int | None = None
    title: str | None = None
    name: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    runtime: int | None = None
    budget: int | None = None
    revenue: int | None = None
    release_date: str | None = None
    first_air_date: str | None = None
    status: str | None = None
    vote_average: float | None = None
    vote_count: int | None = None
    genres: list[Genre] | None = None
    number_of_seasons: int | None = None
    number_of_episodes: int | None = None
    seasons: list[Season] | None = None
    media_type: str | None = None
    created_by: list[Creator] | None = None
    belongs_to_collection: Collection | None = None

    credits: Credits | None = None
    images: TitleImages | None = None
    videos: VideoPage | None = None
    reviews: ReviewPage | None = None
    recommendations: TitlePage | None = None
    release_dates: ReleaseDatesBlock | None = None
    content_ratings: ContentRatingsBlock | None = None
    watch_providers: WatchProviders | None = Field(default=None, alias="watch/providers")

    @field_validator(*_APPENDED_BLOCKS, mode="wrap")
    @classmethod
    def _tolerate_broken_block(
        cls, value: Any, handler: Any, info: ValidationInfo
    ) -> Any:
        """A malformed appended block is dropped instead of failing the envelope."""

        try:
            return handler(value)
        except ValidationError as exc:
            logger.warning(
                "Ignoring malformed %s block in title payload (%d errors)",
                info.field_name,
                exc.error_count(),
            )
            return None

    def to_title(self) -> Title:
        """Return the core title fields as a :class:`Title`."""

        return Title(
            id=self.id,
            title=self.title,
            name=self.name,
            overview=self.overview,
            poster_path=self.poster_path,
            backdrop_path=self.backdrop_path,
            runtime=self.runtime,
            budget=self.budget,
            revenue=self.revenue,
            release_date=self.release_date or self.first_air_date,
            status=self.status,
            vote_average=self.vote_average,
            vote_count=self.vote_count,
            genres=self.genres,
            number_of_seasons=self.number_of_seasons,
            number_of_episodes=self.number_of_episodes,
            seasons=self.seasons,
            media_type=self.media_type,
            images=self.images,
            created_by=self.created_by,
            belongs_to_collection=self.belongs_to_collection,
        )


class CategorySection(BaseModel):
    """A named shelf of titles."""

    title: str
    subtitle: str
    items: list[Title] = Field(default_factory=list)
