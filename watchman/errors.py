"""Exceptions raised while talking to TMDB."""

from __future__ import annotations


class TMDBError(Exception):
    """Base class for every failure surfaced by the TMDB client."""


class UrlBuildError(TMDBError):
    """The request could not be built (unknown family or bad arguments)."""


class MissingConfigError(UrlBuildError):
    """The API key or base URL is not configured."""


class NotFoundError(TMDBError):
    """TMDB answered 404 for the requested resource."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Resource not found: {path}")


class RateLimitedError(TMDBError):
    """TMDB answered 429 Too Many Requests."""

    def __init__(self, retry_after: int | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(
            "Rate limit exceeded. Please try again later."
            if retry_after is None
            else f"Rate limit exceeded. Retry after {retry_after}s"
        )


class BadResponseError(TMDBError):
    """Any other non-200 status, or a body that could not be decoded."""

    def __init__(self, detail: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        self.detail = detail
        prefix = f"HTTP {status_code}: " if status_code is not None else ""
        super().__init__(f"{prefix}{detail}")
