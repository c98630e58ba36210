"""Certification resolution from release-date and content-rating blocks."""

from __future__ import annotations

from watchman.certification import (
    NOT_RATED,
    resolve_embedded_certification,
    resolve_movie_certification,
    resolve_tv_certification,
)
from watchman.models import ContentRating, ReleaseDateGroup


def groups(payload: list[dict]) -> list[ReleaseDateGroup]:
    return [ReleaseDateGroup.model_validate(entry) for entry in payload]


def test_prefers_us_theatrical_or_digital_release() -> None:
    release_groups = groups(
        [
            {"iso_3166_1": "FR", "release_dates": [{"certification": "12", "type": 1}]},
            {
                "iso_3166_1": "US",
                "release_dates": [
                    {"certification": "", "type": 3},
                    {"certification": "PG-13", "type": 4},
                ],
            },
        ]
    )

    assert resolve_movie_certification(release_groups) == "PG-13"


def test_falls_back_to_any_country_in_payload_order() -> None:
    release_groups = groups(
        [{"iso_3166_1": "DE", "release_dates": [{"certification": "FSK 16", "type": 2}]}]
    )

    assert resolve_movie_certification(release_groups) == "FSK 16"


def test_us_release_of_other_type_beats_foreign_ratings() -> None:
    release_groups = groups(
        [
            {"iso_3166_1": "GB", "release_dates": [{"certification": "15", "type": 3}]},
            {"iso_3166_1": "US", "release_dates": [{"certification": "R", "type": 1}]},
        ]
    )

    assert resolve_movie_certification(release_groups) == "R"


def test_all_empty_certifications_are_not_rated() -> None:
    release_groups = groups(
        [
            {"iso_3166_1": "US", "release_dates": [{"certification": "", "type": 3}]},
            {"iso_3166_1": "FR", "release_dates": [{"certification": "", "type": 1}]},
        ]
    )

    assert resolve_movie_certification(release_groups) == NOT_RATED
    assert resolve_movie_certification([]) == NOT_RATED


def test_tv_rating_prefers_configured_country() -> None:
    ratings = [
        ContentRating.model_validate({"iso_3166_1": "GB", "rating": "15"}),
        ContentRating.model_validate({"iso_3166_1": "US", "rating": "TV-MA"}),
    ]

    assert resolve_tv_certification(ratings) == "TV-MA"
    assert resolve_tv_certification(ratings, country="DE") == "15"
    assert resolve_tv_certification([]) == NOT_RATED


def test_embedded_certification_uses_content_ratings_for_shows() -> None:
    ratings = [ContentRating.model_validate({"iso_3166_1": "US", "rating": "TV-14"})]

    assert resolve_embedded_certification(None, ratings) == "TV-14"
    assert resolve_embedded_certification(None, None) == NOT_RATED
