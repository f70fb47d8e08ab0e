"""Terminal output helpers shared by the CLI commands."""

import json as _json
import re
from typing import Any, Iterable, Optional

import click


def json(data: Any) -> None:
    click.echo(_json.dumps(data, indent=2, ensure_ascii=False))


def heading(text: str) -> None:
    click.secho(text, bold=True, fg="cyan")


def info(label: str, value: Any) -> None:
    """Print "label: value", skipping empty values."""
    if value is None or value == "":
        return
    click.echo(f"  {click.style(label + ':', fg='bright_black')} {value}")


def warn(text: str) -> None:
    click.secho(text, fg="yellow", err=True)


def error(text: str) -> None:
    click.secho(text, fg="red", err=True)


def success(text: str) -> None:
    click.secho(text, fg="green")


def dim(text: str) -> str:
    return click.style(text, dim=True)


def bold(text: str) -> str:
    return click.style(text, bold=True)


def ratingStr(rating: Optional[float], votes: Optional[int] = None) -> str:
    if not rating:
        return dim("N/A")
    if rating >= 8:
        colour = "green"
    elif rating >= 6:
        colour = "yellow"
    else:
        colour = "red"
    stars = click.style(str(rating), fg=colour)
    if votes is not None:
        return f"{stars} {dim(f'({votes} votes)')}"
    return stars


def episodeCode(season: Any, episode: Any) -> str:
    parts = []
    if season is not None:
        parts.append(f"S{str(season).zfill(2)}")
    if episode is not None:
        parts.append(f"E{str(episode).zfill(2)}")
    return "".join(parts)


def datePart(timestamp: Optional[str]) -> str:
    return (timestamp or "").split("T")[0]


def stripHtml(text: str) -> str:
    text = re.sub(r"<br\s*/?>", "\n  ", text, flags=re.IGNORECASE)
    return re.sub(r"<[^>]+>", "", text)


def mediaOf(item: dict) -> Optional[dict]:
    """The show/movie/anime object nested in a library entry."""
    return item.get("show") or item.get("movie") or item.get("anime")


def printMediaList(items: Optional[Iterable[dict]]) -> None:
    items = list(items or [])
    if not items:
        click.echo(dim("  No results found."))
        return

    for item in items:
        media_type = item.get("endpoint_type") or item.get("type") or item.get("anime_type") or ""
        type_tag = dim(f"[{media_type}]") if media_type else ""
        year = dim(f"({item['year']})") if item.get("year") else ""
        ids = item.get("ids") or {}
        item_id = ids.get("simkl_id") or ids.get("simkl") or ""

        click.echo(f"  {bold(item.get('title') or 'Unknown')} {year} {type_tag} {dim(f'#{item_id}')}")

        ratings = item.get("ratings") or {}
        parts = []
        for key, label in (("simkl", "Simkl"), ("imdb", "IMDB"), ("mal", "MAL")):
            entry = ratings.get(key) or {}
            if entry.get("rating"):
                parts.append(f"{label}: {ratingStr(entry['rating'], entry.get('votes'))}")
        if parts:
            click.echo(f"    {'  '.join(parts)}")

        if item.get("status"):
            click.echo(f"    {dim('Status:')} {item['status']}")


def printDetail(data: dict) -> None:
    heading(data.get("title") or "Unknown")
    info("Year", data.get("year"))
    info("Type", data.get("type"))
    info("Anime Type", data.get("anime_type"))
    info("Status", data.get("status"))
    info("Network", data.get("network"))
    info("Country", data.get("country"))
    info("Runtime", data.get("runtime"))
    info("Certification", data.get("certification"))
    info("Total Episodes", data.get("total_episodes"))
    info("Rank", data.get("rank"))
    info("Director", data.get("director"))

    ids = data.get("ids") or {}
    id_parts = [
        f"{key}:{ids[key]}"
        for key in ("simkl", "imdb", "tmdb", "tvdb", "mal", "anidb", "anilist")
        if ids.get(key)
    ]
    if id_parts:
        info("IDs", ", ".join(id_parts))

    ratings = data.get("ratings") or {}
    parts = []
    for key, label in (("simkl", "Simkl"), ("imdb", "IMDB"), ("mal", "MAL")):
        entry = ratings.get(key)
        if entry:
            parts.append(f"{label}: {ratingStr(entry.get('rating'), entry.get('votes'))}")
    if parts:
        click.echo(f"  {'  '.join(parts)}")

    genres = data.get("genres") or []
    if genres:
        info("Genres", ", ".join(genres))

    overview = data.get("overview")
    if overview:
        click.echo()
        click.echo(f"  {dim(stripHtml(overview))}")


def printEpisodeList(episodes: Optional[Iterable[dict]]) -> None:
    for ep in episodes or []:
        ref = episodeCode(ep.get("season"), ep.get("episode"))
        aired = "" if ep.get("aired") else dim(" [not aired]")
        special = dim(" [special]") if ep.get("type") == "special" else ""
        date = dim(f" ({datePart(str(ep['date']))})") if ep.get("date") else ""
        prefix = f"{ref} " if ref else ""
        click.echo(f"  {prefix}{ep.get('title') or 'TBA'}{date}{aired}{special}")
