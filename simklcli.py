#!/usr/bin/env python3
"""
simkl: command-line client for Simkl.com (TV, anime and movie tracking).

Entry point for the `simkl` console script. Commands are thin wrappers around
SimklIO; PIN authentication is handled by SimklAuth.PinAuthenticator.
"""

import logging
import signal
import time
from typing import Optional

import click
from tqdm import tqdm

import config
import output
from EpisodeRef import (
    InvalidEpisodeReference,
    describe_episodes,
    parse_episode_numbers,
    parse_multiple_episode_refs,
)
from SimklAuth import AuthError, AuthorizationCancelled, PinAuthenticator
from SimklConfig import SimklConfigStore
from SimklIO import (
    SEARCH_ID_FIELDS,
    WATCHLIST_STATUSES,
    SimklApiError,
    SimklConfigError,
    SimklIO,
    buildMovieHistoryBody,
    buildScrobbleBody,
    buildShowHistoryBody,
)

__version__ = "0.2.0"

DEVELOPER_SETTINGS_URL = "https://simkl.com/settings/developer/"
ITEM_NOT_FOUND = "Could not find item. Provide --title, --imdb, --tmdb, or --simkl."
ALL_RATINGS = "1,2,3,4,5,6,7,8,9,10"


class CliState(object):
    """Config store and API client shared by all commands of one invocation."""

    def __init__(self, config_path: Optional[str] = None):
        self.store = SimklConfigStore(config_path)
        self._client = None

    @property
    def client(self) -> SimklIO:
        if self._client is None:
            self._client = SimklIO(self.store)
        return self._client


pass_state = click.make_pass_decorator(CliState, ensure=True)


class InterruptFlag(object):
    """
    SIGINT handler for the PIN wait.

    The handler only flips a flag; wait() sleeps in short slices and reports
    the flag, so nothing in the handler takes a lock.
    """

    SLICE = 0.1

    def __init__(self):
        self.requested = False

    def handle(self, signum, frame):
        self.requested = True

    def wait(self, seconds: float) -> bool:
        deadline = time.monotonic() + seconds
        while not self.requested:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            time.sleep(min(remaining, self.SLICE))
        return True


class SimklGroup(click.Group):
    """Turns the errors commands are expected to raise into clean CLI errors."""

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except (SimklApiError, SimklConfigError, AuthError, InvalidEpisodeReference) as e:
            logging.debug("Command failed", exc_info=True)
            raise click.ClickException(str(e)) from e


def json_option(f):
    return click.option("--json", "as_json", is_flag=True, help="Output raw JSON")(f)


def item_options(f):
    """Options that identify one show, movie or anime."""
    f = click.option("--simkl", help="Simkl ID")(f)
    f = click.option("--tmdb", help="TMDB ID")(f)
    f = click.option("--imdb", help="IMDB ID")(f)
    f = click.option("-t", "--type", "kind", type=click.Choice(["tv", "movie", "anime"]), help="Search type")(f)
    f = click.option("--movie", is_flag=True, help="Target is a movie")(f)
    f = click.option("--title", help="Show/movie title to search for")(f)
    return f


def resolve_item(state: CliState, title, movie, kind, simkl, imdb, tmdb, mal=None) -> dict:
    search_kind = "movie" if movie else (kind or "tv")
    item = state.client.resolveItem(
        simkl=simkl, imdb=imdb, tmdb=tmdb, mal=mal, title=title, kind=search_kind
    )
    if item is None:
        raise click.ClickException(ITEM_NOT_FOUND)
    if title and item.get("title"):
        logging.info(f"Using '{item['title']}' for search '{title}'")
    return item


def _for_title(item: dict, joiner: str = " for ") -> str:
    return f"{joiner}{item['title']}" if item.get("title") else ""


@click.group(cls=SimklGroup)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__, prog_name="simkl")
@click.pass_context
def cli(ctx, verbose):
    """CLI for Simkl.com - TV, Anime & Movie tracking"""
    logging.basicConfig(
        filename=config.LOG_FILENAME,
        level=logging.DEBUG if verbose else config.LOG_LEVEL,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    ctx.ensure_object(CliState)


# ========== CONFIGURATION & AUTH ==========


@cli.command("config")
@click.option("--client-id", help="Set your Simkl API client ID")
@click.option("--show", is_flag=True, help="Show current configuration")
@click.option("--path", "show_path", is_flag=True, help="Show config file path")
@pass_state
def config_command(state, client_id, show, show_path):
    """Configure API credentials."""
    store = state.store
    if client_id:
        store.setClientId(client_id)
        output.success("Client ID saved.")

    if show_path:
        click.echo(store.path)
        return

    if show or not client_id:
        click.secho("Current configuration:", bold=True)
        click.echo(f"  Client ID: {store.getClientId() or output.dim('not set')}")
        token_state = click.style("configured", fg="green") if store.getAccessToken() else output.dim("not set")
        click.echo(f"  Auth token: {token_state}")
        click.echo(f"  Config path: {output.dim(store.path)}")
        if not store.getClientId():
            click.echo(output.dim(f"\n  Get your API key at: {DEVELOPER_SETTINGS_URL}"))


@cli.command()
@click.option("--logout", is_flag=True, help="Clear saved authentication")
@click.option("--status", is_flag=True, help="Check authentication status")
@pass_state
@click.pass_context
def auth(ctx, state, logout, status):
    """Authenticate with Simkl using a PIN."""
    store = state.store
    if logout:
        store.clearAuth()
        output.success("Logged out successfully.")
        return

    if status:
        if store.isAuthenticated():
            output.success("Authenticated.")
        else:
            output.warn("Not authenticated. Run: simkl auth")
        return

    client_id = store.getClientId()
    if not client_id:
        raise click.ClickException("Client ID not configured. Run: simkl config --client-id <your-id>")

    bars = []

    def show_code(authorization):
        click.echo()
        click.secho("To authenticate, visit:", bold=True)
        click.secho(f"  {authorization.verification_url}", fg="cyan")
        click.echo()
        click.secho("Enter this code:", bold=True)
        click.secho(f"  {authorization.user_code}", fg="yellow", bold=True)
        click.echo()
        bars.append(
            tqdm(
                total=authorization.expires_in,
                desc="Waiting for authorization",
                unit="s",
                leave=False,
                bar_format="{desc}: {bar} {remaining} left",
            )
        )

    def show_poll(poll, remaining):
        if bars:
            bar = bars[0]
            bar.n = max(0, min(bar.total, bar.total - int(remaining)))
            bar.refresh()

    interrupt = InterruptFlag()
    authenticator = PinAuthenticator(
        state.client, store, on_code=show_code, on_poll=show_poll, wait=interrupt.wait
    )
    previous_handler = signal.signal(signal.SIGINT, interrupt.handle)
    try:
        authenticator.authenticate(client_id)
    except AuthorizationCancelled:
        for bar in bars:
            bar.close()
        bars.clear()
        output.warn("\nAuthorization cancelled. Nothing was saved.")
        ctx.exit(130)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        for bar in bars:
            bar.close()

    output.success("\nAuthenticated successfully!")


# ========== SEARCH ==========


@cli.command()
@click.argument("query")
@click.option("-t", "--type", "kind", default="movie", show_default=True, help="Filter by type: tv, movie, anime")
@click.option("-l", "--limit", default=10, show_default=True, type=int, help="Results per page")
@click.option("-p", "--page", default=1, show_default=True, type=int, help="Page number")
@click.option("-e", "--extended", is_flag=True, help="Include ratings and additional info")
@json_option
@pass_state
def search(state, query, kind, limit, page, extended, as_json):
    """Search for TV shows, movies, or anime."""
    data = state.client.search(kind, query, page=page, limit=limit, extended=extended)
    if as_json:
        output.json(data)
        return
    output.heading(f'Search results for "{query}" ({kind}):')
    output.printMediaList(data)


def _search_id_options(f):
    for field in reversed(SEARCH_ID_FIELDS):
        f = click.option(f"--{field}", help=f"{field} ID")(f)
    return f


@cli.command("search-id")
@_search_id_options
@click.option("--title", help="Title (for narrowing results)")
@click.option("--year", help="Release year")
@click.option("-t", "--type", "kind", help="Type for TMDB lookups: show, movie")
@json_option
@pass_state
def search_id(state, title, year, kind, as_json, **ids):
    """Look up items by external ID (IMDB, TMDB, TVDB, MAL, etc.)."""
    params = {field: value for field, value in ids.items() if value}
    if not params:
        raise click.ClickException("Provide at least one ID, e.g. --imdb tt0903747")
    params.update({"title": title, "year": year, "type": kind})
    data = state.client.searchById(**params)
    if as_json:
        output.json(data)
        return
    output.heading("Search by ID results:")
    output.printMediaList(data if isinstance(data, list) else [data] if data else [])


@cli.command("search-file")
@click.argument("file")
@click.option("--part", type=int, help="Part number for multi-episode files")
@json_option
@pass_state
def search_file(state, file, part, as_json):
    """Find show/anime/movie by filename."""
    data = state.client.searchFile(file, part) or {}
    if as_json:
        output.json(data)
        return
    output.heading("File match:")
    output.info("Type", data.get("type"))
    show = data.get("show")
    movie = data.get("movie")
    episode = data.get("episode")
    if show:
        output.info("Show", show.get("title"))
        output.info("Year", show.get("year"))
    if movie:
        output.info("Movie", movie.get("title"))
        output.info("Year", movie.get("year"))
    if episode:
        output.info("Season", episode.get("season"))
        output.info("Episode", episode.get("episode"))
        output.info("Title", episode.get("title"))


@cli.command()
@click.option("-t", "--type", "kind", help="Type: tv, movie, anime")
@click.option("--genre", help="Filter by genre")
@click.option("--rating-from", type=int, help="Minimum rating (1-10)")
@click.option("--rating-to", type=int, help="Maximum rating (1-10)")
@click.option("--year-from", type=int, help="Minimum year")
@click.option("--year-to", type=int, help="Maximum year")
@click.option("--rank-limit", type=int, help="Maximum rank")
@click.option("-l", "--limit", type=int, help="Number of results")
@click.option("--service", default="simkl", show_default=True, help="Service: simkl, netflix")
@json_option
@pass_state
def random(state, kind, genre, rating_from, rating_to, year_from, year_to, rank_limit, limit, service, as_json):
    """Find a random show, anime, or movie."""
    data = state.client.randomPick(
        service=service,
        type=kind,
        genre=genre,
        rating_from=rating_from,
        rating_to=rating_to,
        year_from=year_from,
        year_to=year_to,
        rank_limit=rank_limit,
        limit=limit,
    )
    if as_json:
        output.json(data)
        return
    output.heading("Random pick:")
    if isinstance(data, list):
        output.printMediaList(data)
    else:
        data = data or {}
        click.echo(f"  {data.get('title') or 'Unknown'} {output.dim('(' + str(data.get('year') or '?') + ')')}")


# ========== MEDIA INFO & DISCOVERY ==========


def _add_info_commands(group, kind, label):
    @group.command("info")
    @click.argument("item_id")
    @click.option("-e", "--extended", is_flag=True, help="Include full details")
    @json_option
    @pass_state
    def info_command(state, item_id, extended, as_json):
        """Get detailed info (Simkl ID or IMDB ID)."""
        data = state.client.mediaInfo(kind, item_id, extended=extended)
        if as_json:
            output.json(data)
            return
        output.printDetail(data or {})

    @group.command("trending")
    @click.option("-i", "--interval", default="today", show_default=True,
                  type=click.Choice(["today", "week", "month"]), help="Time period")
    @json_option
    @pass_state
    def trending_command(state, interval, as_json):
        """Get trending titles."""
        data = state.client.trending(kind, interval)
        if as_json:
            output.json(data)
            return
        output.heading(f"Trending {label} ({interval}):")
        output.printMediaList(data)


def _add_series_commands(group, kind, label, best_types, premiere_types):
    @group.command("episodes")
    @click.argument("item_id")
    @click.option("-e", "--extended", is_flag=True, help="Include full details")
    @json_option
    @pass_state
    def episodes_command(state, item_id, extended, as_json):
        """List episodes (Simkl ID)."""
        data = state.client.episodes(kind, item_id, extended=extended)
        if as_json:
            output.json(data)
            return
        output.heading("Episodes:")
        output.printEpisodeList(data)

    @group.command("best")
    @click.argument("filter_name", metavar="FILTER")
    @click.option("-t", "--type", "media_type", help=f"Type: {best_types}")
    @json_option
    @pass_state
    def best_command(state, filter_name, media_type, as_json):
        """Get the best titles. FILTER: year, month, all, voted, watched."""
        data = state.client.best(kind, filter_name, media_type)
        if as_json:
            output.json(data)
            return
        output.heading(f"Best {label} ({filter_name}):")
        output.printMediaList(data)

    @group.command("premieres")
    @click.argument("param")
    @click.option("-t", "--type", "media_type", help=f"Type: {premiere_types}")
    @json_option
    @pass_state
    def premieres_command(state, param, media_type, as_json):
        """Get latest premieres. PARAM: new, soon."""
        data = state.client.premieres(kind, param, media_type)
        if as_json:
            output.json(data)
            return
        output.heading(f"{label} Premieres ({param}):")
        output.printMediaList(data)

    @group.command("airing")
    @click.option("-d", "--date", default="today", show_default=True, help="Date: today, tomorrow, or DD-MM-YYYY")
    @click.option("-s", "--sort", help="Sort: time, rank, popularity")
    @json_option
    @pass_state
    def airing_command(state, date, sort, as_json):
        """Get currently airing titles."""
        data = state.client.airing(kind, date=date, sort=sort)
        if as_json:
            output.json(data)
            return
        output.heading(f"Airing {label} ({date}):")
        for item in data or []:
            ep = item.get("episode")
            if kind == "anime":
                ep_str = output.dim(f" Ep {ep.get('episode')}") if ep else ""
                ep_str += output.dim(f" [{item['anime_type']}]") if item.get("anime_type") else ""
            else:
                ep_str = output.dim(" " + output.episodeCode(ep.get("season"), ep.get("episode"))) if ep else ""
            click.echo(f"  {item.get('title')} {output.dim('(' + str(item.get('year')) + ')')}{ep_str}")


def _add_genres_command(group, kind, label, segments):
    """segments: (option name, default) pairs making up the /genres/... path, in order."""

    def command(state, page, limit, as_json, **values):
        data = state.client.genres(kind, [values[name] for name, _ in segments], page=page, limit=limit)
        if as_json:
            output.json(data)
            return
        output.heading(f"{label} by Genre:")
        output.printMediaList(data)

    command.__doc__ = f"Browse {label.lower()} by genre."
    command = pass_state(command)
    command = json_option(command)
    command = click.option("-l", "--limit", type=int, help="Results per page")(command)
    command = click.option("-p", "--page", type=int, help="Page number")(command)
    for name, default in reversed(segments):
        command = click.option(f"--{name}", default=default, show_default=True)(command)
    group.command("genres")(command)


@cli.group()
def tv():
    """TV show information and discovery."""


@cli.group()
def anime():
    """Anime information and discovery."""


@cli.group()
def movie():
    """Movie information and discovery."""


_add_info_commands(tv, "tv", "TV Shows")
_add_series_commands(
    tv, "tv", "TV Shows",
    best_types="series, documentary, entertainment, animation",
    premiere_types="all, entertainment, documentaries, animation-filter",
)
_add_genres_command(tv, "tv", "TV Shows", [
    ("genre", "all"), ("type", "tv-shows"), ("country", "all-countries"),
    ("network", "all-networks"), ("year", "all-years"), ("sort", "rank"),
])

_add_info_commands(anime, "anime", "Anime")
_add_series_commands(
    anime, "anime", "Anime",
    best_types="all, tv, movies, ovas, music, onas",
    premiere_types="all, series, movies, ovas",
)
_add_genres_command(anime, "anime", "Anime", [
    ("genre", "all"), ("type", "all-types"), ("network", "all-networks"),
    ("year", "all-years"), ("sort", "rank"),
])

_add_info_commands(movie, "movie", "Movies")
_add_genres_command(movie, "movie", "Movies", [
    ("genre", "all"), ("country", "all-countries"), ("year", "all-years"), ("sort", "rank"),
])


# ========== LIBRARY MANAGEMENT ==========


@cli.command()
@click.option("-t", "--type", "media_type", default="shows", show_default=True,
              type=click.Choice(["shows", "movies", "anime"]), help="Type")
@click.option("-s", "--status", default="watching", show_default=True,
              type=click.Choice(WATCHLIST_STATUSES), help="Status")
@click.option("--extended", help="Extended info: full, full_anime_seasons")
@click.option("--date-from", help="Filter by date (ISO 8601)")
@json_option
@pass_state
def watchlist(state, media_type, status, extended, date_from, as_json):
    """View your watchlist."""
    data = state.client.allItems(media_type, status, extended=extended, date_from=date_from)
    if as_json:
        output.json(data)
        return

    # The endpoint answers with {"shows": [...]} or a bare list depending on type
    items = data.get(media_type, []) if isinstance(data, dict) else (data or [])
    if not items:
        click.echo(output.dim("  No items in your watchlist."))
        return

    output.heading(f"Watchlist ({media_type} - {status}):")
    for item in items:
        media = output.mediaOf(item)
        if not media:
            continue
        line = f"  {output.bold(media.get('title') or 'Unknown')} {output.dim('(' + str(media.get('year')) + ')')}"
        watched = item.get("watched_episodes_count")
        total = item.get("total_episodes_count")
        if watched is not None and total is not None:
            line += f" {output.dim(f'[{watched}/{total} eps]')}"
        if item.get("user_rating"):
            line += f" {click.style('★' + str(item['user_rating']), fg='yellow')}"
        if item.get("last_watched_at"):
            line += f" {output.dim('last: ' + output.datePart(item['last_watched_at']))}"
        click.echo(line)


@cli.command()
@click.argument("episode_ref", required=False)
@click.option("-m", "--movie", is_flag=True, help="Mark a movie as watched")
@click.option("-t", "--title", help="Show or movie title to search for")
@click.option("-s", "--season", type=click.IntRange(min=1), help="Season number (default: 1)")
@click.option("-e", "--episodes", help="Episode numbers, e.g. '1,2,3' or '1-5'")
@click.option("--imdb", help="IMDB ID")
@click.option("--tmdb", help="TMDB ID")
@click.option("--simkl", help="Simkl ID")
@click.option("--mal", help="MAL ID")
@click.option("--at", "watched_at", help="When watched (ISO 8601 UTC)")
@json_option
@pass_state
def watch(state, episode_ref, movie, title, season, episodes, imdb, tmdb, simkl, mal, watched_at, as_json):
    """
    Mark episodes or movies as watched.

    EPISODE_REF accepts 5, 1x05, S01E05, 1.5, 1-5 or a comma separated mix
    such as 1x05,1x06,2x01. Every term must be valid.
    """
    if not movie and not episode_ref and not episodes:
        raise click.ClickException("Provide an episode reference: simkl watch 1x05 --title 'Show Name'")

    item = resolve_item(state, title, movie, None, simkl, imdb, tmdb, mal)

    if movie:
        data = state.client.addToHistory(buildMovieHistoryBody(item, watched_at))
        if as_json:
            output.json(data)
            return
        output.success(f"Marked movie as watched{_for_title(item, ': ')}")
        return

    default_season = season or 1
    if episode_ref:
        pairs = parse_multiple_episode_refs(episode_ref, default_season, strict=True)
        # One history entry per episode, also for "5,1x05"
        pairs = sorted(set(pairs))
    else:
        # Bulk numbers: unreadable terms are skipped
        pairs = [(default_season, number) for number in parse_episode_numbers(episodes)]
    if not pairs:
        raise click.ClickException("No valid episode numbers provided")

    if not as_json:
        click.echo(output.dim(f"Marking {describe_episodes(pairs)} as watched..."))
    data = state.client.addToHistory(buildShowHistoryBody(item, pairs, watched_at))
    if as_json:
        output.json(data)
        return
    output.success(f"Marked {len(pairs)} episode(s) as watched{_for_title(item)}")


@cli.command("mark-watched")
@click.argument("show")
@click.option("-s", "--season", default=1, show_default=True, type=click.IntRange(min=1), help="Season number")
@click.option("-e", "--episodes", default="1", show_default=True, help="Episode numbers, e.g. '1,2,3' or '1-5'")
@click.option("-t", "--type", "kind", default="tv", show_default=True,
              type=click.Choice(["tv", "anime", "movie"]), help="Search type")
@click.option("--imdb", help="IMDB ID of the show")
@click.option("--tmdb", help="TMDB ID of the show")
@click.option("--at", "watched_at", help="When watched (ISO 8601 UTC)")
@json_option
@pass_state
def mark_watched(state, show, season, episodes, kind, imdb, tmdb, watched_at, as_json):
    """
    Mark a batch of episodes of SHOW as watched.

    Episode terms that cannot be read are skipped.
    """
    numbers = parse_episode_numbers(episodes)
    if not numbers:
        raise click.ClickException("No valid episode numbers provided")

    item = resolve_item(state, show, False, kind, None, imdb, tmdb)
    if not as_json and item.get("title"):
        click.echo(output.dim(f"Found: {item['title']} ({item.get('year') or 'unknown year'})"))

    pairs = [(season, number) for number in numbers]
    data = state.client.addToHistory(buildShowHistoryBody(item, pairs, watched_at))
    if as_json:
        output.json(data)
        return
    output.success(f"Marked {len(numbers)} episode(s) in season {season} as watched")


@cli.command()
@item_options
@click.option("--season", type=click.IntRange(min=1), help="Season to remove")
@click.option("--episodes", help="Episodes to remove (1,2,3 or 1-5)")
@json_option
@pass_state
def unwatch(state, title, movie, kind, imdb, tmdb, simkl, season, episodes, as_json):
    """Remove items from watched history."""
    if episodes and not season:
        raise click.ClickException("--episodes requires --season")

    item = resolve_item(state, title, movie, kind, simkl, imdb, tmdb)
    if movie:
        body = {"movies": [item]}
    elif season and episodes:
        numbers = parse_episode_numbers(episodes, strict=True)
        body = buildShowHistoryBody(item, [(season, number) for number in numbers])
    elif season:
        body = {"shows": [dict(item, seasons=[{"number": season}])]}
    else:
        body = {"shows": [item]}

    data = state.client.removeFromHistory(body)
    if as_json:
        output.json(data)
        return
    output.success("Removed from watched history.")


@cli.command("list")
@item_options
@click.option("-s", "--status", default="plantowatch", show_default=True,
              type=click.Choice(WATCHLIST_STATUSES), help="List to add to")
@json_option
@pass_state
def list_command(state, title, movie, kind, imdb, tmdb, simkl, status, as_json):
    """Add items to a specific list."""
    item = resolve_item(state, title, movie, kind, simkl, imdb, tmdb)
    entry = dict(item, to=status)
    is_movie = movie or kind == "movie"
    body = {"movies": [entry]} if is_movie else {"shows": [entry]}

    data = state.client.addToList(body)
    if as_json:
        output.json(data)
        return
    output.success(f"Added to {status}{_for_title(item, ': ')}")


@cli.command()
@item_options
@click.option("--season", type=click.IntRange(min=1), help="Season number")
@click.option("--episode", type=click.IntRange(min=1), help="Episode number")
@json_option
@pass_state
def checkin(state, title, movie, kind, imdb, tmdb, simkl, season, episode, as_json):
    """Check in to an item (sets 'watching now' status)."""
    item = resolve_item(state, title, movie, kind, simkl, imdb, tmdb)
    if movie:
        body = {"movie": dict(item)}
    else:
        show = dict(item)
        if season and episode:
            show["episode"] = {"season": season, "number": episode}
        body = {"show": show}

    data = state.client.checkin(body)
    if as_json:
        output.json(data)
        return
    output.success("Checked in successfully.")


# ========== RATINGS ==========


@cli.command()
@item_options
@click.option("-r", "--rating", default=10, show_default=True, type=click.IntRange(1, 10), help="Rating (1-10)")
@json_option
@pass_state
def rate(state, title, movie, kind, imdb, tmdb, simkl, rating, as_json):
    """Rate a movie or show."""
    item = resolve_item(state, title, movie, kind, simkl, imdb, tmdb)
    body = {"movies": [item]} if (movie or kind == "movie") else {"shows": [item]}

    data = state.client.rate(body, rating)
    if as_json:
        output.json(data)
        return
    output.success(f"Rated {rating}/10{_for_title(item, ': ')}")


@cli.command()
@click.option("-t", "--type", "media_type", default="shows", show_default=True,
              type=click.Choice(["shows", "movies", "anime"]), help="Type")
@click.option("-r", "--rating", default=ALL_RATINGS, help="Filter by rating (1-10, or comma-separated)")
@click.option("--date-from", help="Filter by date (ISO 8601)")
@json_option
@pass_state
def ratings(state, media_type, rating, date_from, as_json):
    """View your ratings."""
    data = state.client.ratings(media_type, rating, date_from=date_from)
    if as_json:
        output.json(data)
        return

    output.heading("Your Ratings:")
    items = data.get(media_type, []) if isinstance(data, dict) else (data or [])
    if not items:
        click.echo(output.dim("  No ratings found."))
        return
    for item in items:
        media = output.mediaOf(item)
        if not media:
            continue
        rated = output.dim(f" rated {output.datePart(item['rated_at'])}") if item.get("rated_at") else ""
        stars = click.style(f"★{item.get('user_rating', item.get('rating'))}", fg="yellow")
        click.echo(f"  {stars} {output.bold(media.get('title') or 'Unknown')} {output.dim('(' + str(media.get('year')) + ')')}{rated}")


@cli.command()
@item_options
@json_option
@pass_state
def unrate(state, title, movie, kind, imdb, tmdb, simkl, as_json):
    """Remove a rating."""
    item = resolve_item(state, title, movie, kind, simkl, imdb, tmdb)
    body = {"movies": [item]} if (movie or kind == "movie") else {"shows": [item]}

    data = state.client.unrate(body)
    if as_json:
        output.json(data)
        return
    output.success("Rating removed.")


@cli.command("item-rating")
@click.option("--simkl", help="Simkl ID")
@click.option("--imdb", help="IMDB ID")
@click.option("--tmdb", help="TMDB ID")
@click.option("--tvdb", help="TVDB ID")
@click.option("--mal", help="MAL ID")
@click.option("-t", "--type", "media_type", help="Type: show, movie, tv, anime")
@click.option("--fields", default="simkl,ext,rank,reactions,year,has_trailer", show_default=True)
@json_option
@pass_state
def item_rating(state, simkl, imdb, tmdb, tvdb, mal, media_type, fields, as_json):
    """Get ratings for a specific movie, show, or anime."""
    data = state.client.itemRating(
        simkl=simkl, imdb=imdb, tmdb=tmdb, tvdb=tvdb, mal=mal, type=media_type, fields=fields
    )
    if as_json:
        output.json(data)
        return

    data = data or {}
    output.heading("Item Rating:")
    output.info("Simkl Link", data.get("link"))
    output.info("Year", data.get("release_year"))
    output.info("Rank", (data.get("rank") or {}).get("value"))
    simkl_rating = data.get("simkl")
    if simkl_rating:
        click.echo(f"  Simkl: {simkl_rating.get('rating')} ({simkl_rating.get('votes')} votes)")
    imdb_rating = data.get("IMDB")
    if imdb_rating:
        click.echo(f"  IMDB: {imdb_rating.get('rating')} ({imdb_rating.get('votes')} votes)")


@cli.command("watchlist-ratings")
@click.argument("media_type", metavar="TYPE", type=click.Choice(["tv", "anime", "movies"]))
@click.option("-s", "--status", default="all", show_default=True,
              type=click.Choice(["all"] + WATCHLIST_STATUSES), help="Watchlist status")
@click.option("--fields", default="simkl,ext,rank,release_status,year", show_default=True)
@json_option
@pass_state
def watchlist_ratings(state, media_type, status, fields, as_json):
    """Get updated ratings for items in your watchlist."""
    data = state.client.watchlistRatings(media_type, status, fields)
    if as_json:
        output.json(data)
        return

    output.heading(f"Watchlist Ratings ({media_type} - {status}):")
    if not data:
        click.echo(output.dim("  No items found."))
        return
    for item in data:
        simkl_rating = item.get("simkl") or {}
        rating = f" {click.style('★' + str(simkl_rating['rating']), fg='yellow')}" if simkl_rating.get("rating") else ""
        release = output.dim(f" [{item['release_status']}]") if item.get("release_status") else ""
        name = str(item.get("link") or f"#{item.get('id')}")
        year = output.dim("(" + str(item.get("release_year") or "?") + ")")
        click.echo(f"  {output.bold(name)} {year}{rating}{release}")


# ========== SCROBBLE & PLAYBACK ==========


@cli.group()
def scrobble():
    """Scrobble management (start/pause/stop)."""


def _print_scrobble_response(data):
    data = data or {}
    output.info("Action", data.get("action"))
    if data.get("progress") is not None:
        output.info("Progress", f"{data['progress']}%")
    for key, label in (("movie", "Movie"), ("show", "Show"), ("anime", "Anime")):
        if data.get(key):
            output.info(label, data[key].get("title"))
    episode = data.get("episode")
    if episode:
        output.info("Episode", f"S{episode.get('season')}E{episode.get('number')} {episode.get('title') or ''}".rstrip())


def _add_scrobble_command(action, done_message, help_text):
    @scrobble.command(action, help=help_text)
    @click.option("--title", help="Movie/show title")
    @click.option("--movie", is_flag=True, help="Scrobble a movie")
    @click.option("--progress", type=click.FloatRange(0, 100), help="Playback progress percentage (0-100)")
    @click.option("--season", type=click.IntRange(min=1), help="Season number")
    @click.option("--episode", type=click.IntRange(min=1), help="Episode number")
    @click.option("--imdb", help="IMDB ID")
    @click.option("--tmdb", help="TMDB ID")
    @click.option("--simkl", help="Simkl ID")
    @click.option("--mal", help="MAL ID")
    @json_option
    @pass_state
    def command(state, title, movie, progress, season, episode, imdb, tmdb, simkl, mal, as_json):
        body = buildScrobbleBody(
            title=title, movie=movie, progress=progress, season=season, episode=episode,
            imdb=imdb, tmdb=tmdb, simkl=simkl, mal=mal,
        )
        data = state.client.scrobble(action, body)
        if as_json:
            output.json(data)
            return
        output.success(done_message)
        _print_scrobble_response(data)

    return command


_add_scrobble_command("start", "Scrobble started.", "Start watching (scrobble).")
_add_scrobble_command("pause", "Scrobble paused.", "Pause watching (saves progress).")
_add_scrobble_command("stop", "Scrobble stopped.", "Stop watching.")


@cli.command()
@click.option("-t", "--type", "media_type", default="episodes", show_default=True,
              type=click.Choice(["movies", "episodes"]), help="Type")
@click.option("-l", "--limit", type=int, help="Number of results")
@click.option("--hide-watched", is_flag=True, help="Hide already watched items")
@click.option("--date-from", help="Filter from date (ISO 8601)")
@click.option("--date-to", help="Filter to date (ISO 8601)")
@json_option
@pass_state
def playback(state, media_type, limit, hide_watched, date_from, date_to, as_json):
    """View paused playback sessions (continue watching)."""
    data = state.client.playback(
        media_type,
        limit=limit,
        hide_watched="true" if hide_watched else None,
        date_from=date_from,
        date_to=date_to,
    )
    if as_json:
        output.json(data)
        return

    output.heading("Playback Sessions:")
    if not data:
        click.echo(output.dim("  No active playback sessions."))
        return
    for item in data:
        media = item.get("show") or item.get("movie") or {}
        line = f"  {output.bold(media.get('title') or 'Unknown')}"
        episode = item.get("episode")
        if episode:
            number = episode.get("number") or episode.get("episode")
            line += output.dim(" " + output.episodeCode(episode.get("season"), number))
        line += f" {click.style(str(item.get('progress')) + '%', fg='cyan')}"
        if item.get("paused_at"):
            line += output.dim(f" paused {output.datePart(item['paused_at'])}")
        line += output.dim(f" (id:{item.get('id')})")
        click.echo(line)


@cli.command("playback-delete")
@click.argument("playback_id", metavar="ID")
@pass_state
def playback_delete(state, playback_id):
    """Delete a paused playback session."""
    state.client.deletePlayback(playback_id)
    output.success("Playback session deleted.")


# ========== USER ==========


@cli.command()
@json_option
@pass_state
def user(state, as_json):
    """View your Simkl profile and settings."""
    data = state.client.userSettings() or {}
    if as_json:
        output.json(data)
        return

    output.heading("User Profile:")
    profile = data.get("user")
    if profile:
        output.info("Name", profile.get("name"))
        output.info("Bio", profile.get("bio"))
        output.info("Location", profile.get("location"))
        output.info("Gender", profile.get("gender"))
        output.info("Age", profile.get("age"))
        output.info("Joined", profile.get("joined_at"))
    account = data.get("account")
    if account:
        output.info("Account ID", account.get("id"))
        output.info("Timezone", account.get("timezone"))
        output.info("Type", account.get("type"))


STATS_STATUSES = ["watching", "completed", "plantowatch", "hold", "dropped", "notinteresting"]


@cli.command()
@click.argument("user_id", required=False)
@json_option
@pass_state
def stats(state, user_id, as_json):
    """View watching statistics (defaults to the authenticated user)."""
    if not user_id:
        settings = state.client.userSettings() or {}
        user_id = (settings.get("account") or {}).get("id")
        if not user_id:
            raise click.ClickException("Could not determine your account id")

    data = state.client.userStats(user_id) or {}
    if as_json:
        output.json(data)
        return

    output.heading("Watching Statistics:")
    total_mins = data.get("total_mins")
    if total_mins is not None:
        hours = total_mins // 60
        days = hours // 24
        click.echo(f"  {output.bold('Total time:')} {days} days, {hours % 24} hours ({total_mins:,} min)")

    for category in ("movies", "tv", "anime"):
        category_data = data.get(category)
        if not category_data:
            continue
        click.echo()
        output.heading(f"  {category.capitalize()}:")
        category_mins = category_data.get("total_mins")
        if category_mins is not None:
            output.info("  Time", f"{category_mins // 60} hours ({category_mins:,} min)")
        for status in STATS_STATUSES:
            status_data = category_data.get(status) or {}
            count = status_data.get("count")
            if count:
                episodes = status_data.get("total_episodes")
                episodes_str = f" ({episodes} episodes)" if episodes else ""
                output.info(f"  {status}", f"{count} items{episodes_str}")

    last_week = data.get("watched_last_week")
    if last_week:
        click.echo()
        output.heading("  Last Week:")
        for key, value in last_week.items():
            if isinstance(value, (int, float)) and value > 0:
                output.info(f"  {key}", value)


@cli.command()
@json_option
@pass_state
def activities(state, as_json):
    """Get last activity timestamps (for sync)."""
    data = state.client.activities() or {}
    if as_json:
        output.json(data)
        return

    output.heading("Last Activity:")
    for category in ("all", "tv_shows", "anime", "movies", "settings"):
        category_data = data.get(category)
        if not category_data:
            continue
        if not isinstance(category_data, dict):
            click.echo(f"  {output.bold(category)}: {category_data}")
            continue
        click.echo(f"  {output.bold(category)}:")
        for key, value in category_data.items():
            if value:
                click.echo(f"    {output.dim(key + ':')} {value}")


def _split_ids(text, as_int):
    ids = [part.strip() for part in (text or "").split(",") if part.strip()]
    if not as_int:
        return ids
    try:
        return [int(part) for part in ids]
    except ValueError as e:
        raise click.BadParameter(f"expected comma separated numbers, got '{text}'") from e


@cli.command("check-watched")
@click.option("--simkl", help="Comma-separated Simkl IDs")
@click.option("--imdb", help="Comma-separated IMDB IDs")
@click.option("--tmdb", help="Comma-separated TMDB IDs")
@click.option("--extended", help="Fields: counters, episodes, specials")
@json_option
@pass_state
def check_watched(state, simkl, imdb, tmdb, extended, as_json):
    """Check if specific items are in your watched list."""
    items = [{"simkl": value} for value in _split_ids(simkl, True)]
    items += [{"imdb": value} for value in _split_ids(imdb, False)]
    items += [{"tmdb": value} for value in _split_ids(tmdb, True)]
    if not items:
        raise click.ClickException("Provide at least one ID: --simkl, --imdb, or --tmdb")

    data = state.client.checkWatched(items, extended=extended)
    if as_json:
        output.json(data)
        return

    output.heading("Watched Status:")
    for item in data or []:
        result = str(item.get("result")).lower()
        if result == "true":
            icon = click.style("✓", fg="green")
        elif result == "false":
            icon = click.style("✗", fg="red")
        else:
            icon = click.style("?", fg="yellow")
        listed = output.dim(f"[{item['list']}]") if item.get("list") else ""
        click.echo(f"  {icon} {item.get('title') or 'Unknown'} {listed} {output.dim('(' + result + ')')}")


# ========== SYNC ==========

SYNC_KEYS = {"movie": "movies", "tv": "shows", "anime": "anime"}


@cli.group()
def sync():
    """Add or update items by title."""


def _sync_item(state, title, kind, imdb, tmdb, as_json):
    item = resolve_item(state, title, False, kind, None, imdb, tmdb)
    if not as_json and not (imdb or tmdb):
        click.echo(output.dim(f"Found: {item.get('title')} ({item.get('year') or '?'}) [{kind}]"))
    return item


@sync.command("add")
@click.argument("title")
@click.option("-t", "--type", "kind", default="movie", show_default=True,
              type=click.Choice(sorted(SYNC_KEYS)), help="Type")
@click.option("-s", "--status", default="plantowatch", show_default=True,
              type=click.Choice(WATCHLIST_STATUSES), help="Status")
@click.option("--imdb", help="IMDB ID (e.g., tt1234567)")
@click.option("--tmdb", help="TMDB ID")
@json_option
@pass_state
def sync_add(state, title, kind, status, imdb, tmdb, as_json):
    """Add TITLE to your watchlist."""
    item = _sync_item(state, title, kind, imdb, tmdb, as_json)
    data = state.client.addToList({SYNC_KEYS[kind]: [dict(item, to=status)]})
    if as_json:
        output.json(data)
        return
    output.success(f"Added to {status}")


@sync.command("history")
@click.argument("title")
@click.option("-t", "--type", "kind", default="movie", show_default=True,
              type=click.Choice(sorted(SYNC_KEYS)), help="Type")
@click.option("--imdb", help="IMDB ID")
@click.option("--tmdb", help="TMDB ID")
@click.option("--at", "watched_at", help="When watched (ISO 8601)")
@json_option
@pass_state
def sync_history(state, title, kind, imdb, tmdb, watched_at, as_json):
    """Add TITLE to your watch history."""
    item = _sync_item(state, title, kind, imdb, tmdb, as_json)
    entry = dict(item)
    if watched_at:
        entry["watched_at"] = watched_at
    data = state.client.addToHistory({SYNC_KEYS[kind]: [entry]})
    if as_json:
        output.json(data)
        return
    output.success(f'Added "{item.get("title") or title}" to watch history')


def main():
    cli(prog_name="simkl")


if __name__ == "__main__":
    main()
