from watchman.models import Title
from watchman.utils import (
    build_image_url,
    filter_titles,
    interleave,
    is_listable,
    resolve_poster_paths,
    unseen_titles,
)

BASE = "https://image.tmdb.org/t/p/w500"


def test_build_image_url_adds_missing_slash():
    assert build_image_url("abc.jpg", BASE) == f"{BASE}/abc.jpg"
    assert build_image_url("/abc.jpg", BASE) == f"{BASE}/abc.jpg"


def test_build_image_url_leaves_absolute_urls():
    url = "https://cdn.example.com/poster.jpg"
    assert build_image_url(url, BASE) == url
    assert build_image_url("", BASE) is None
    assert build_image_url(None, BASE) is None


def test_resolve_poster_paths_skips_missing_posters():
    titles = [Title(id=1, poster_path="/a.jpg"), Title(id=2, poster_path=None)]
    resolve_poster_paths(titles, BASE)
    assert titles[0].poster_path == f"{BASE}/a.jpg"
    assert titles[1].poster_path is None


def test_filter_titles_drops_sentinel_rating():
    titles = [Title(id=1, vote_average=10.0), Title(id=2, vote_average=9.9), Title(id=3)]
    assert [title.id for title in filter_titles(titles)] == [2, 3]


def test_is_listable_requires_poster():
    assert is_listable(Title(id=1, poster_path="/p.jpg", vote_average=7.0))
    assert not is_listable(Title(id=2, poster_path="", vote_average=7.0))
    assert not is_listable(Title(id=3, poster_path="/p.jpg", vote_average=10.0))


def test_unseen_titles_keeps_first_occurrence_and_idless_titles():
    existing = [Title(id=1), Title(id=2)]
    incoming = [Title(id=2), Title(id=3), Title(id=3), Title(title="No id")]
    fresh = unseen_titles(existing, incoming)
    assert [title.id for title in fresh] == [3, None]


def test_interleave_alternates_and_caps():
    movies = [Title(id=index) for index in (1, 2, 3)]
    shows = [Title(id=index) for index in (10, 20)]
    assert [title.id for title in interleave(movies, shows, 4)] == [1, 10, 2, 20]
    assert [title.id for title in interleave(movies, shows, 20)] == [1, 10, 2, 20, 3]
