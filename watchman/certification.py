"""Age-rating resolution for TMDB release data."""

from __future__ import annotations

from typing import Iterable, Sequence

from .models import ContentRating, ReleaseDateGroup

NOT_RATED = "NR"

# Release types that carry the certification audiences actually see.
THEATRICAL = 3
DIGITAL = 4
PREFERRED_RELEASE_TYPES = frozenset({THEATRICAL, DIGITAL})


def resolve_movie_certification(
    groups: Sequence[ReleaseDateGroup], *, country: str = "US"
) -> str:
    """Pick a movie certification from per-country release-date groups.

    Precedence: the preferred country's theatrical/digital release with a
    certification, then any certified release in that country, then the first
    certified release of any country in payload order.
    """

    preferred = next((group for group in groups if group.country == country), None)
    if preferred is not None:
        for release in preferred.release_dates:
            if release.type in PREFERRED_RELEASE_TYPES and release.certification:
                return release.certification
        for release in preferred.release_dates:
            if release.certification:
                return release.certification

    for group in groups:
        for release in group.release_dates:
            if release.certification:
                return release.certification
    return NOT_RATED


def resolve_tv_certification(
    ratings: Sequence[ContentRating], *, country: str = "US"
) -> str:
    """Pick a show rating, preferring the given country."""

    preferred = next((entry for entry in ratings if entry.country == country), None)
    if preferred is not None and preferred.rating:
        return preferred.rating
    return _first_non_empty(entry.rating for entry in ratings) or NOT_RATED


def _first_non_empty(values: Iterable[str]) -> str | None:
    for value in values:
        if value:
            return value
    return None


def resolve_embedded_certification(
    release_dates: Sequence[ReleaseDateGroup] | None,
    content_ratings: Sequence[ContentRating] | None,
    *,
    country: str = "US",
) -> str:
    """Resolve a certification from ``append_to_response`` blocks.

    Movie release dates win when they yield a rating; show content ratings
    are consulted otherwise.
    """

    if release_dates:
        certification = resolve_movie_certification(release_dates, country=country)
        if certification != NOT_RATED:
            return certification
    if content_ratings:
        return resolve_tv_certification(content_ratings, country=country)
    return NOT_RATED
