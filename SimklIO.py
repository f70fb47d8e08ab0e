"""
SimklIO module: thin client for the Simkl REST API.

Every endpoint the CLI uses goes through SimklIO.request(), which turns any
transport problem into a SimklApiError so callers only have one failure type
to deal with.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

import logging

import requests

import config
from SimklConfig import SimklConfigStore

# CLI media kinds -> API path prefixes
MEDIA_PREFIXES = {"tv": "/tv", "anime": "/anime", "movie": "/movies"}

# External id options accepted by /search/id
SEARCH_ID_FIELDS = [
    "simkl",
    "imdb",
    "tmdb",
    "tvdb",
    "mal",
    "anidb",
    "anilist",
    "kitsu",
    "hulu",
    "netflix",
    "crunchyroll",
    "livechart",
    "anisearch",
    "animeplanet",
]

WATCHLIST_STATUSES = ["watching", "plantowatch", "completed", "hold", "dropped"]


class SimklConfigError(Exception):
    """Local configuration is missing something the request needs."""


class SimklApiError(Exception):
    """
    A request to the Simkl API failed.

    status_code is None when the request never got an HTTP response
    (connection refused, DNS failure, timeout).
    """

    def __init__(self, status_code: Optional[int], reason: str, body: Any = None):
        self.status_code = status_code
        self.reason = reason
        self.body = body
        if status_code is None:
            message = f"API request failed: {reason}"
        else:
            message = f"API Error {status_code}: {reason}"
            if status_code == 401:
                message += " (Run: simkl auth)"
        super().__init__(message)


def _to_int(value):
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


class SimklIO(object):
    """
    Handles requests to the Simkl API.

    Features:
    - simkl-api-key and Bearer token headers from the local config store
    - Public endpoints authenticated by client_id query parameter
    - One error type (SimklApiError) for HTTP, network and decoding failures
    - Helpers that build request bodies for history, lists and scrobbles
    """

    def __init__(
        self,
        store: SimklConfigStore,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.store = store
        self.base_url = (base_url or config.SIMKL_API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.SIMKL_API_TIMEOUT
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": config.USER_AGENT})

    def _requireClientId(self) -> str:
        client_id = self.store.getClientId()
        if not client_id:
            raise SimklConfigError("Client ID not configured. Run: simkl config --client-id <your-id>")
        return client_id

    def _headers(self, authenticated: bool, client_id: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "simkl-api-key": client_id or self._requireClientId(),
        }
        if authenticated:
            token = self.store.getAccessToken()
            if not token:
                raise SimklConfigError("Not authenticated. Run: simkl auth")
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
        authenticated: bool = False,
        client_id: Optional[str] = None,
    ) -> Any:
        """
        Send one request and return the decoded JSON body.

        Args:
            method: HTTP method (GET, POST, DELETE)
            path: API path, e.g. "/search/tv"
            params: Query parameters; None values are dropped
            body: JSON body, sent when not None
            authenticated: Attach the stored access token
            client_id: Use this client id instead of the stored one

        Returns:
            Decoded JSON, or None for empty / 204 responses

        Raises:
            SimklApiError: Network failure, non-2xx status or undecodable body
            SimklConfigError: Client id or token missing from the config store
        """
        url = f"{self.base_url}{path}"
        headers = self._headers(authenticated, client_id)
        query = {k: v for k, v in (params or {}).items() if v is not None}

        logging.debug(f"{method} {url} params={query}")
        try:
            response = self.session.request(
                method,
                url,
                params=query or None,
                json=body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logging.debug(f"{method} {url} failed: {e}")
            raise SimklApiError(None, str(e)) from e

        if not response.ok:
            try:
                error_body = response.json()
            except ValueError:
                error_body = response.text or None
            logging.debug(f"{method} {url} -> {response.status_code} {error_body}")
            raise SimklApiError(response.status_code, response.reason or "Error", error_body)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise SimklApiError(response.status_code, "Invalid JSON in response", response.text) from e

    def getPublic(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a public endpoint, passing client_id as a query parameter."""
        query = dict(params or {})
        query["client_id"] = self._requireClientId()
        return self.request("GET", path, params=query)

    # ---- Search ----

    def search(self, kind: str, query: str, page=None, limit=None, extended: bool = False) -> Any:
        params = {"q": query, "page": page, "limit": limit}
        if extended:
            params["extended"] = "full"
        return self.getPublic(f"/search/{kind}", params)

    def searchById(self, **ids) -> Any:
        return self.getPublic("/search/id", ids)

    def searchFile(self, file: str, part: Optional[int] = None) -> Any:
        body: Dict[str, Any] = {"file": file}
        if part is not None:
            body["part"] = part
        return self.request("POST", "/search/file", body=body)

    def randomPick(self, **filters) -> Any:
        return self.getPublic("/search/random", filters)

    # ---- Media info & discovery ----

    @staticmethod
    def _prefix(kind: str) -> str:
        try:
            return MEDIA_PREFIXES[kind]
        except KeyError:
            raise ValueError(f"Unknown media kind '{kind}'")

    def mediaInfo(self, kind: str, item_id: str, extended: bool = False) -> Any:
        return self.getPublic(
            f"{self._prefix(kind)}/{item_id}", {"extended": "full" if extended else None}
        )

    def episodes(self, kind: str, item_id: str, extended: bool = False) -> Any:
        return self.getPublic(
            f"{self._prefix(kind)}/episodes/{item_id}", {"extended": "full" if extended else None}
        )

    def trending(self, kind: str, interval: str = "today") -> Any:
        return self.getPublic(f"{self._prefix(kind)}/trending/{interval}")

    def best(self, kind: str, filter_name: str, media_type: Optional[str] = None) -> Any:
        return self.getPublic(f"{self._prefix(kind)}/best/{filter_name}", {"type": media_type})

    def premieres(self, kind: str, param: str, media_type: Optional[str] = None) -> Any:
        return self.getPublic(f"{self._prefix(kind)}/premieres/{param}", {"type": media_type})

    def airing(self, kind: str, date: str = "today", sort: Optional[str] = None) -> Any:
        return self.getPublic(f"{self._prefix(kind)}/airing", {"date": date, "sort": sort})

    def genres(self, kind: str, segments: Iterable[str], page=None, limit=None) -> Any:
        path = "/".join([f"{self._prefix(kind)}/genres"] + [str(s) for s in segments])
        return self.getPublic(path, {"page": page, "limit": limit})

    # ---- Library ----

    def allItems(self, media_type: str, status: str, extended=None, date_from=None) -> Any:
        return self.request(
            "GET",
            f"/sync/all-items/{media_type}/{status}",
            params={"extended": extended, "date_from": date_from},
            authenticated=True,
        )

    def addToHistory(self, body: dict) -> Any:
        return self.request("POST", "/sync/history", body=body, authenticated=True)

    def removeFromHistory(self, body: dict) -> Any:
        return self.request("POST", "/sync/history/remove", body=body, authenticated=True)

    def addToList(self, body: dict) -> Any:
        return self.request("POST", "/sync/add-to-list", body=body, authenticated=True)

    def checkin(self, body: dict) -> Any:
        return self.request("POST", "/checkin", body=body, authenticated=True)

    # ---- Ratings ----

    def rate(self, body: dict, rating) -> Any:
        return self.request(
            "POST", "/sync/ratings", params={"rating": rating}, body=body, authenticated=True
        )

    def ratings(self, media_type: str, rating: str, date_from=None) -> Any:
        return self.request(
            "POST",
            f"/sync/ratings/{media_type}/{rating}",
            params={"date_from": date_from},
            authenticated=True,
        )

    def unrate(self, body: dict) -> Any:
        return self.request("POST", "/sync/ratings/remove", body=body, authenticated=True)

    def itemRating(self, **params) -> Any:
        return self.getPublic("/ratings", params)

    def watchlistRatings(self, media_type: str, status: str = "all", fields=None) -> Any:
        return self.request(
            "GET",
            f"/ratings/{media_type}",
            params={"user_watchlist": status, "fields": fields},
            authenticated=True,
        )

    # ---- Scrobble & playback ----

    def scrobble(self, action: str, body: dict) -> Any:
        if action not in ("start", "pause", "stop"):
            raise ValueError(f"Unknown scrobble action '{action}'")
        return self.request("POST", f"/scrobble/{action}", body=body, authenticated=True)

    def playback(self, media_type: str = "episodes", **params) -> Any:
        return self.request("GET", f"/sync/playback/{media_type}", params=params, authenticated=True)

    def deletePlayback(self, playback_id) -> Any:
        return self.request("DELETE", f"/sync/playback/{playback_id}", authenticated=True)

    # ---- User ----

    def userSettings(self) -> Any:
        return self.request("POST", "/users/settings", authenticated=True)

    def userStats(self, user_id) -> Any:
        return self.getPublic(f"/users/{user_id}/stats")

    def activities(self) -> Any:
        return self.request("POST", "/sync/activities", authenticated=True)

    def checkWatched(self, items: List[dict], extended=None) -> Any:
        return self.request(
            "POST", "/sync/watched", params={"extended": extended}, body=items, authenticated=True
        )

    # ---- Item resolution ----

    def resolveItem(
        self,
        simkl=None,
        imdb: Optional[str] = None,
        tmdb=None,
        mal=None,
        title: Optional[str] = None,
        kind: str = "tv",
    ) -> Optional[dict]:
        """
        Work out which item a command is about.

        A direct id wins (simkl, then imdb, then tmdb, then mal). Otherwise the
        first search hit for the title is used.

        :return: {"ids": {...}} plus "title"/"year" when found by search, or None
        """
        if simkl:
            return {"ids": {"simkl": _to_int(simkl)}}
        if imdb:
            return {"ids": {"imdb": imdb}}
        if tmdb:
            return {"ids": {"tmdb": _to_int(tmdb)}}
        if mal:
            return {"ids": {"mal": _to_int(mal)}}
        if not title:
            return None

        results = self.search(kind, title, limit=1)
        if not isinstance(results, list) or not results:
            logging.info(f"No search results for '{title}' ({kind})")
            return None
        first = results[0]
        ids = first.get("ids") or {}
        simkl_id = ids.get("simkl_id") or ids.get("simkl")
        if not simkl_id:
            logging.info(f"Search hit '{first.get('title')}' has no Simkl id")
            return None
        item: Dict[str, Any] = {"ids": {"simkl": simkl_id}}
        if first.get("title"):
            item["title"] = first["title"]
        if first.get("year"):
            item["year"] = first["year"]
        logging.debug(f"Resolved '{title}' to {item}")
        return item


def buildShowHistoryBody(
    item: dict, pairs: Iterable[Tuple[int, int]], watched_at: Optional[str] = None
) -> dict:
    """
    Body for /sync/history (and /sync/history/remove) naming episodes of one show.

    Pairs are grouped by season; seasons and episodes keep ascending order.
    """
    seasons: Dict[int, List[int]] = {}
    for season, episode in pairs:
        seasons.setdefault(season, []).append(episode)

    season_entries = []
    for season in sorted(seasons):
        episodes = []
        for number in seasons[season]:
            episode_entry: Dict[str, Any] = {"number": number}
            if watched_at:
                episode_entry["watched_at"] = watched_at
            episodes.append(episode_entry)
        season_entries.append({"number": season, "episodes": episodes})

    show = dict(item)
    show["seasons"] = season_entries
    return {"shows": [show]}


def buildMovieHistoryBody(item: dict, watched_at: Optional[str] = None) -> dict:
    movie = dict(item)
    if watched_at:
        movie["watched_at"] = watched_at
    return {"movies": [movie]}


def buildScrobbleBody(
    title: Optional[str] = None,
    movie: bool = False,
    progress=None,
    season=None,
    episode=None,
    imdb: Optional[str] = None,
    tmdb=None,
    simkl=None,
    mal=None,
) -> dict:
    """
    Body for /scrobble/{start,pause,stop}.

    A MAL id marks the item as anime. Season/episode are only attached to
    shows and anime.
    """
    body: Dict[str, Any] = {}
    if progress is not None:
        body["progress"] = float(progress)

    ids: Dict[str, Any] = {}
    if imdb:
        ids["imdb"] = imdb
    if tmdb:
        ids["tmdb"] = _to_int(tmdb)
    if simkl:
        ids["simkl"] = _to_int(simkl)
    if mal:
        ids["mal"] = _to_int(mal)

    if movie:
        entry: Dict[str, Any] = {"title": title} if title else {}
        entry["ids"] = ids
        body["movie"] = entry
        return body

    if mal:
        body["anime"] = {"ids": ids}
    else:
        entry = {"title": title} if title else {}
        entry["ids"] = ids
        body["show"] = entry

    if season is not None or episode is not None:
        episode_entry: Dict[str, Any] = {}
        if season is not None:
            episode_entry["season"] = _to_int(season)
        if episode is not None:
            episode_entry["number"] = _to_int(episode)
        body["episode"] = episode_entry
    return body
