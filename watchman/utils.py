"""Utility helpers shared by the Watchman services."""

from __future__ import annotations

from typing import Iterable, MutableSequence, Sequence

from .models import Title


def build_image_url(path: str | None, base_url: str) -> str | None:
    """Return an absolute image URL for a TMDB relative path."""

    if not path:
        return None
    if path.startswith("http"):
        return path
    clean_path = path if path.startswith("/") else f"/{path}"
    return f"{base_url.rstrip('/')}{clean_path}"


def resolve_poster_paths(titles: MutableSequence[Title], base_url: str) -> None:
    """Rewrite relative poster paths in place to absolute CDN URLs."""

    for title in titles:
        if title.poster_path:
            title.poster_path = build_image_url(title.poster_path, base_url)


def filter_titles(titles: Iterable[Title]) -> list[Title]:
    """Drop titles carrying the 10.0 sentinel rating."""

    return [title for title in titles if not title.has_sentinel_rating]


def is_listable(title: Title) -> bool:
    """Return whether a title can appear in an infinite-scroll grid."""

    return not title.has_sentinel_rating and title.has_poster


def unseen_titles(existing: Sequence[Title], incoming: Iterable[Title]) -> list[Title]:
    """Return incoming titles whose id is not already present.

    Titles without an id cannot be compared and are always kept.
    """

    seen = {title.id for title in existing if title.id is not None}
    fresh: list[Title] = []
    for title in incoming:
        if title.id is None:
            fresh.append(title)
            continue
        if title.id in seen:
            continue
        seen.add(title.id)
        fresh.append(title)
    return fresh


def interleave(first: Sequence[Title], second: Sequence[Title], limit: int) -> list[Title]:
    """Alternate items from two lists, capped at ``limit`` entries."""

    combined: list[Title] = []
    for index in range(max(len(first), len(second))):
        if index < len(first):
            combined.append(first[index])
        if index < len(second):
            combined.append(second[index])
    return combined[:limit]
