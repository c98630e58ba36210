"""Process-lifetime response cache for TMDB detail lookups.

Each resource family gets its own typed bucket so callers never have to cast
values read back out of the cache. There is no expiry and no size bound:
entries live until :meth:`ResponseCache.clear` is called. The cache is owned
by a single event loop and must not be shared across threads.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from ..models import Country, DetailEnvelope, Episode, Language, SeasonDetail, Title

T = TypeVar("T")


def cache_key(family: str, *parts: object) -> str:
    """Return the deterministic key for a family and its identifiers.

    >>> cache_key("fullTitle_movie", 550)
    'fullTitle_movie_550'
    """

    return "_".join([family, *(str(part) for part in parts)])


class CacheBucket(Generic[T]):
    """Key/value store for one resource family."""

    def __init__(self, family: str) -> None:
        self.family = family
        self._entries: dict[str, T] = {}

    def get(self, key: str) -> T | None:
        return self._entries.get(key)

    def put(self, key: str, value: T) -> None:
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class ResponseCache:
    """Typed read-through cache shared by the detail lookups."""

    def __init__(self) -> None:
        self.full_titles: CacheBucket[DetailEnvelope] = CacheBucket("fullTitle")
        self.person_credits: CacheBucket[list[Title]] = CacheBucket("directorCredits")
        self.collections: CacheBucket[list[Title]] = CacheBucket("collection")
        self.seasons: CacheBucket[SeasonDetail] = CacheBucket("season")
        self.episodes: CacheBucket[Episode] = CacheBucket("episode")
        self.countries: CacheBucket[list[Country]] = CacheBucket("config_countries")
        self.languages: CacheBucket[list[Language]] = CacheBucket("config_languages")

    @property
    def buckets(self) -> tuple[CacheBucket, ...]:
        return (
            self.full_titles,
            self.person_credits,
            self.collections,
            self.seasons,
            self.episodes,
            self.countries,
            self.languages,
        )

    def clear(self) -> None:
        """Drop every cached entry."""

        for bucket in self.buckets:
            bucket.clear()

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self.buckets)

    @staticmethod
    def full_title_key(title_id: int, kind: str) -> str:
        return cache_key(f"fullTitle_{kind}", title_id)

    @staticmethod
    def person_credits_key(person_id: int) -> str:
        return cache_key("directorCredits", person_id)

    @staticmethod
    def collection_key(collection_id: int) -> str:
        return cache_key("collection", collection_id)

    @staticmethod
    def season_key(show_id: int, season_number: int) -> str:
        return cache_key("season", show_id, season_number)

    @staticmethod
    def episode_key(show_id: int, season_number: int, episode_number: int) -> str:
        return cache_key("episode", show_id, f"S{season_number}E{episode_number}")
