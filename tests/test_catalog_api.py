import pytest
import requests

import catalog_api as capi
from app_core.media_kinds import MOVIES, TV_SHOWS
from app_core.view_models import catalog_fields


def _patch_details(monkeypatch, responses):
    calls = []

    def fake(tmdb_id, media_type="movie", language=None):
        calls.append(language)
        value = responses[language]
        if isinstance(value, Exception):
            raise value
        return value

    monkeypatch.setattr(capi, "get_tmdb_details", fake)
    return calls

def test_localized_details_keeps_primary_when_overview_present(monkeypatch):
    calls = _patch_details(monkeypatch, {
        capi.PRIMARY_LANGUAGE: {"id": 603, "overview": "Un pirate informatique..."},
    })
    data = capi.get_localized_details(603)
    assert data["overview"] == "Un pirate informatique..."
    assert calls == [capi.PRIMARY_LANGUAGE]

def test_localized_details_uses_fallback_overview_when_primary_empty(monkeypatch):
    calls = _patch_details(monkeypatch, {
        capi.PRIMARY_LANGUAGE: {"id": 603, "overview": "", "title": "Matrix"},
        capi.FALLBACK_LANGUAGE: {"id": 603, "overview": "A hacker learns the truth.", "title": "The Matrix"},
    })
    data = capi.get_localized_details(603)
    assert data["overview"] == "A hacker learns the truth."
    # other fields stay from the primary payload
    assert data["title"] == "Matrix"
    assert calls == [capi.PRIMARY_LANGUAGE, capi.FALLBACK_LANGUAGE]

def test_localized_details_keeps_primary_when_fallback_fails(monkeypatch):
    _patch_details(monkeypatch, {
        capi.PRIMARY_LANGUAGE: {"id": 603, "overview": ""},
        capi.FALLBACK_LANGUAGE: requests.ConnectionError("down"),
    })
    assert capi.get_localized_details(603) == {"id": 603, "overview": ""}

def test_localized_details_falls_back_when_primary_request_fails(monkeypatch):
    _patch_details(monkeypatch, {
        capi.PRIMARY_LANGUAGE: requests.HTTPError("500 Server Error"),
        capi.FALLBACK_LANGUAGE: {"id": 603, "overview": "English"},
    })
    assert capi.get_localized_details(603)["overview"] == "English"

def test_localized_details_propagates_when_both_fail(monkeypatch):
    _patch_details(monkeypatch, {
        capi.PRIMARY_LANGUAGE: requests.HTTPError("500"),
        capi.FALLBACK_LANGUAGE: requests.HTTPError("404"),
    })
    with pytest.raises(requests.HTTPError):
        capi.get_localized_details(603)

def test_missing_credentials_raise_config_error(monkeypatch):
    monkeypatch.delenv("TMDB_TOKEN", raising=False)
    monkeypatch.delenv("TMDB_API_KEY", raising=False)
    with pytest.raises(capi.CatalogConfigError):
        capi.resolve_credentials()

def test_credentials_prefer_bearer_token(monkeypatch):
    monkeypatch.setenv("TMDB_TOKEN", "tok")
    monkeypatch.setenv("TMDB_API_KEY", "key")
    headers, params = capi.resolve_credentials()
    assert headers["Authorization"] == "Bearer tok"
    assert params == {}

def test_search_maps_tv_names(monkeypatch):
    seen = {}

    def fake_get(path, **params):
        seen["path"] = path
        return {"results": [{"id": 1396, "name": "Breaking Bad", "first_air_date": "2008-01-20", "poster_path": "/bb.jpg"}]}

    monkeypatch.setattr(capi, "_get", fake_get)
    results = capi.search_tmdb("breaking", "tv")
    assert seen["path"] == "/search/tv"
    assert results[0]["title"] == "Breaking Bad"
    assert results[0]["year"] == "2008"
    assert results[0]["media_type"] == "tv"

def test_unknown_media_type_rejected():
    with pytest.raises(ValueError):
        capi.search_tmdb("x", "podcast")

def test_tmdb_poster_url_unit():
    assert capi.tmdb_poster_url(None) is None
    assert capi.tmdb_poster_url("/x.jpg").endswith("/w500/x.jpg")
    assert capi.tmdb_poster_url("https://cdn/x.jpg") == "https://cdn/x.jpg"

def test_catalog_fields_for_movie_picks_director_and_cast():
    data = {
        "overview": "Deckard hunts replicants.",
        "runtime": 117,
        "vote_average": 7.9,
        "genres": [{"id": 878, "name": "Science Fiction"}],
        "credits": {
            "cast": [{"name": "Harrison Ford", "character": "Deckard"}],
            "crew": [{"name": "Jordan Cronenweth", "job": "Director of Photography"},
                     {"name": "Ridley Scott", "job": "Director"}],
        },
    }
    fields = catalog_fields(data, MOVIES)
    assert fields["director"] == "Ridley Scott"
    assert fields["cast"][0]["name"] == "Harrison Ford"
    assert fields["duration"] == 117
    assert fields["genres"] == ["Science Fiction"]

def test_catalog_fields_for_tv_show_seasons_and_network():
    data = {
        "overview": "",
        "number_of_seasons": 5,
        "number_of_episodes": 62,
        "status": "Ended",
        "networks": [{"name": "AMC"}],
        "created_by": [{"name": "Vince Gilligan"}],
        "episode_run_time": [47],
    }
    fields = catalog_fields(data, TV_SHOWS)
    assert "overview" not in fields
    assert fields["number_of_seasons"] == 5
    assert fields["network"] == "AMC"
    assert fields["creator"] == "Vince Gilligan"
    assert fields["duration"] == 47

def test_localized_details_rejects_non_object_payload(monkeypatch):
    _patch_details(monkeypatch, {capi.PRIMARY_LANGUAGE: ["unexpected"]})
    with pytest.raises(ValueError):
        capi.get_localized_details(603)

def test_localized_details_ignores_non_object_fallback(monkeypatch):
    _patch_details(monkeypatch, {
        capi.PRIMARY_LANGUAGE: {"id": 603, "overview": ""},
        capi.FALLBACK_LANGUAGE: "oops",
    })
    assert capi.get_localized_details(603) == {"id": 603, "overview": ""}
