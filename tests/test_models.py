from watchman.models import DetailEnvelope, Title, TitleImages, WatchProviders


def test_title_reads_show_first_air_date():
    show = Title.model_validate({"id": 1396, "name": "Breaking Bad", "first_air_date": "2008-01-20"})

    assert show.release_date == "2008-01-20"
    assert show.media_kind == "tv"
    assert show.display_name == "Breaking Bad"


def test_title_media_kind_prefers_explicit_media_type():
    entry = Title.model_validate({"id": 1, "name": "Odd", "media_type": "movie"})
    assert entry.media_kind == "movie"
    assert Title(id=2, title="Heat").media_kind == "movie"


def test_season_entries_skip_specials():
    show = Title.model_validate(
        {
            "id": 1,
            "name": "Show",
            "seasons": [
                {"season_number": 0, "episode_count": 3},
                {"season_number": 1, "episode_count": 8},
                {"season_number": 2},
            ],
        }
    )
    assert show.season_entries() == [(1, 8), (2, 0)]


def test_best_logo_prefers_language_then_votes():
    images = TitleImages.model_validate(
        {
            "logos": [
                {"file_path": "/fr.png", "iso_639_1": "fr", "vote_average": 9.0},
                {"file_path": "/en-low.png", "iso_639_1": "en", "vote_average": 1.0},
                {"file_path": "/en-high.png", "iso_639_1": "en", "vote_average": 5.0},
            ]
        }
    )
    assert images.best_logo().file_path == "/en-high.png"
    assert TitleImages().best_logo() is None


def test_subscription_offers_sorted_by_priority():
    providers = WatchProviders.model_validate(
        {
            "results": {
                "IN": {
                    "flatrate": [
                        {"provider_id": 2, "provider_name": "B", "display_priority": 5},
                        {"provider_id": 1, "provider_name": "A", "display_priority": 1},
                    ]
                }
            }
        }
    )
    assert [item.provider_id for item in providers.subscription_offers("IN")] == [1, 2]
    assert providers.subscription_offers("US") == []


def test_envelope_tolerates_malformed_appended_block():
    envelope = DetailEnvelope.model_validate(
        {
            "id": 550,
            "title": "Fight Club",
            "release_date": "1999-10-15",
            "credits": {"cast": "not-a-list"},
            "watch/providers": {"results": {"US": {"flatrate": []}}},
        }
    )

    assert envelope.credits is None
    assert envelope.watch_providers is not None
    title = envelope.to_title()
    assert title.id == 550
    assert title.release_date == "1999-10-15"
    assert title.media_kind == "movie"
