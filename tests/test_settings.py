"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest

from watchman.config import Settings


def test_defaults_match_tmdb_v3() -> None:
    settings = Settings(_env_file=None)

    assert settings.tmdb_base_url == "https://api.themoviedb.org/3"
    assert settings.poster_base_url == "https://image.tmdb.org/t/p/w500"
    assert settings.watch_provider_region == "IN"
    assert settings.certification_country == "US"


def test_region_codes_are_upper_cased() -> None:
    settings = Settings(_env_file=None, WATCH_PROVIDER_REGION=" gb ", CERTIFICATION_COUNTRY="de")

    assert settings.watch_provider_region == "GB"
    assert settings.certification_country == "DE"


def test_invalid_region_raises() -> None:
    with pytest.raises(ValueError, match="two-letter"):
        Settings(_env_file=None, WATCH_PROVIDER_REGION="India")


def test_blank_api_key_is_treated_as_missing() -> None:
    settings = Settings(_env_file=None, TMDB_API_KEY="   ")

    assert settings.tmdb_api_key is None


def test_base_url_trailing_slash_is_stripped() -> None:
    settings = Settings(_env_file=None, TMDB_API_URL="https://tmdb.example.com/3/")

    assert settings.tmdb_base_url == "https://tmdb.example.com/3"


def test_package_exports_settings_lazily() -> None:
    import watchman

    assert watchman.Settings is Settings
    with pytest.raises(AttributeError):
        watchman.not_a_thing  # noqa: B018
