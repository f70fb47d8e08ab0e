from __future__ import annotations

import pytest
import requests
import responses
from responses import matchers

from SimklIO import (
    SimklApiError,
    SimklConfigError,
    SimklIO,
    buildMovieHistoryBody,
    buildScrobbleBody,
    buildShowHistoryBody,
)

BASE = "https://api.simkl.com"


@pytest.fixture()
def client(authed_store) -> SimklIO:
    return SimklIO(authed_store, base_url=BASE + "/")


def test_public_get_sends_client_id_and_api_key(client) -> None:
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{BASE}/search/tv",
            json=[{"title": "Breaking Bad", "year": 2008, "ids": {"simkl_id": 11121}}],
            match=[
                matchers.query_param_matcher({"q": "breaking bad", "limit": "1", "client_id": "client-123"}),
                matchers.header_matcher({"simkl-api-key": "client-123"}),
            ],
        )
        data = client.search("tv", "breaking bad", limit=1)

        assert "Authorization" not in rsps.calls[0].request.headers
        assert rsps.calls[0].request.headers["User-Agent"].startswith("simkl-cli/")
    assert data[0]["title"] == "Breaking Bad"


def test_authenticated_post_sends_bearer_token_and_body(client) -> None:
    body = buildShowHistoryBody({"ids": {"simkl": 1}}, [(1, 1), (1, 2)])
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            f"{BASE}/sync/history",
            json={"added": {"episodes": 2}},
            match=[
                matchers.json_params_matcher(body),
                matchers.header_matcher({"Authorization": "Bearer token-abc", "simkl-api-key": "client-123"}),
            ],
        )
        assert client.addToHistory(body) == {"added": {"episodes": 2}}


def test_http_error_carries_status_and_body(client) -> None:
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{BASE}/sync/activities", json={"error": "user_token_failed"}, status=401)
        with pytest.raises(SimklApiError) as excinfo:
            client.activities()

    err = excinfo.value
    assert err.status_code == 401
    assert err.body == {"error": "user_token_failed"}
    assert str(err).startswith("API Error 401: ")
    assert "simkl auth" in str(err)


def test_http_error_with_text_body(client) -> None:
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/tv/trending/today", body="Bad gateway", status=502)
        with pytest.raises(SimklApiError) as excinfo:
            client.trending("tv")
    assert excinfo.value.status_code == 502
    assert excinfo.value.body == "Bad gateway"


def test_network_failure_has_no_status(client) -> None:
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/movies/trending/week", body=requests.exceptions.ConnectionError("refused"))
        with pytest.raises(SimklApiError) as excinfo:
            client.trending("movie", "week")
    assert excinfo.value.status_code is None
    assert "refused" in str(excinfo.value)


def test_empty_and_no_content_responses(client) -> None:
    with responses.RequestsMock() as rsps:
        rsps.add(responses.DELETE, f"{BASE}/sync/playback/42", status=204)
        rsps.add(responses.POST, f"{BASE}/checkin", body="", status=201)
        assert client.deletePlayback(42) is None
        assert client.checkin({"movie": {"ids": {"simkl": 1}}}) is None


def test_invalid_json_is_an_api_error(client) -> None:
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{BASE}/users/settings", body="<html>", status=200)
        with pytest.raises(SimklApiError, match="Invalid JSON"):
            client.userSettings()


def test_missing_client_id(store) -> None:
    with pytest.raises(SimklConfigError, match="simkl config"):
        SimklIO(store, base_url=BASE).search("tv", "x")


def test_missing_token(store) -> None:
    store.setClientId("client-123")
    with pytest.raises(SimklConfigError, match="simkl auth"):
        SimklIO(store, base_url=BASE).activities()


def test_explicit_client_id_overrides_store(store) -> None:
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{BASE}/oauth/pin",
            json={"user_code": "X"},
            match=[matchers.header_matcher({"simkl-api-key": "other"})],
        )
        data = SimklIO(store, base_url=BASE).request("GET", "/oauth/pin", params={"client_id": "other"}, client_id="other")
    assert data == {"user_code": "X"}


def test_endpoint_paths(client) -> None:
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/anime/genres/all/all-types/all-networks/all-years/rank", json=[])
        rsps.add(responses.GET, f"{BASE}/sync/all-items/shows/watching", json={"shows": []})
        rsps.add(responses.POST, f"{BASE}/sync/ratings/movies/9,10", json={"movies": []})
        rsps.add(
            responses.POST,
            f"{BASE}/sync/ratings",
            json={},
            match=[matchers.query_param_matcher({"rating": "8"})],
        )

        client.genres("anime", ["all", "all-types", "all-networks", "all-years", "rank"])
        client.allItems("shows", "watching")
        client.ratings("movies", "9,10")
        client.rate({"movies": [{"ids": {"simkl": 5}}]}, 8)


def test_unknown_kind_and_action(client) -> None:
    with pytest.raises(ValueError):
        client.mediaInfo("podcast", "1")
    with pytest.raises(ValueError):
        client.scrobble("rewind", {})


def test_resolve_item_prefers_direct_ids(client) -> None:
    assert client.resolveItem(simkl="17465") == {"ids": {"simkl": 17465}}
    assert client.resolveItem(imdb="tt0903747", title="ignored") == {"ids": {"imdb": "tt0903747"}}
    assert client.resolveItem(tmdb="1396") == {"ids": {"tmdb": 1396}}
    assert client.resolveItem(mal="5114") == {"ids": {"mal": 5114}}
    assert client.resolveItem() is None


def test_resolve_item_by_title(client) -> None:
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{BASE}/search/anime",
            json=[{"title": "Frieren", "year": 2023, "ids": {"simkl_id": 2249849}}],
            match=[matchers.query_param_matcher({"q": "frieren", "limit": "1", "client_id": "client-123"})],
        )
        item = client.resolveItem(title="frieren", kind="anime")
    assert item == {"ids": {"simkl": 2249849}, "title": "Frieren", "year": 2023}


def test_resolve_item_no_results(client) -> None:
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/search/movie", json=[])
        assert client.resolveItem(title="nothing at all", kind="movie") is None


def test_show_history_body_groups_by_season() -> None:
    body = buildShowHistoryBody({"ids": {"simkl": 1}, "title": "X"}, [(1, 1), (2, 3), (1, 2)], "2024-01-01T00:00:00Z")
    assert body == {
        "shows": [
            {
                "ids": {"simkl": 1},
                "title": "X",
                "seasons": [
                    {
                        "number": 1,
                        "episodes": [
                            {"number": 1, "watched_at": "2024-01-01T00:00:00Z"},
                            {"number": 2, "watched_at": "2024-01-01T00:00:00Z"},
                        ],
                    },
                    {"number": 2, "episodes": [{"number": 3, "watched_at": "2024-01-01T00:00:00Z"}]},
                ],
            }
        ]
    }


def test_movie_history_body() -> None:
    assert buildMovieHistoryBody({"ids": {"imdb": "tt1"}}) == {"movies": [{"ids": {"imdb": "tt1"}}]}
    assert buildMovieHistoryBody({"ids": {"imdb": "tt1"}}, "2024-05-05") == {
        "movies": [{"ids": {"imdb": "tt1"}, "watched_at": "2024-05-05"}]
    }


def test_scrobble_bodies() -> None:
    assert buildScrobbleBody(title="Inception", movie=True, progress=12, imdb="tt1375666") == {
        "progress": 12.0,
        "movie": {"title": "Inception", "ids": {"imdb": "tt1375666"}},
    }
    assert buildScrobbleBody(title="Show", season=1, episode=3, simkl="99") == {
        "show": {"title": "Show", "ids": {"simkl": 99}},
        "episode": {"season": 1, "number": 3},
    }
    assert buildScrobbleBody(mal="5114", episode=7, progress=50) == {
        "progress": 50.0,
        "anime": {"ids": {"mal": 5114}},
        "episode": {"number": 7},
    }


def test_resolve_item_ignores_non_list_search_body(client) -> None:
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/search/tv", json={"error": "bad_request"})
        assert client.resolveItem(title="anything", kind="tv") is None
