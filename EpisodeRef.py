import logging
import re
from typing import Iterable, List, NamedTuple, Tuple

# Forms tried in order, first match wins
SEASON_EPISODE_REGEX = re.compile(r"^s(\d+)e(\d+)$")
SEASON_X_EPISODE_REGEX = re.compile(r"^(\d+)x(\d+)$")
SEASON_DOT_EPISODE_REGEX = re.compile(r"^(\d+)\.(\d+)$")
EPISODE_NUMBER_REGEX = re.compile(r"^(\d+)$")
EPISODE_RANGE_REGEX = re.compile(r"^(\d+)\s*[-:]\s*(\d+)$")

REFERENCE_HELP = "Use formats like: 5, 1x05, S01E05, 1.5, 1-5, 1,3,5"


class InvalidEpisodeReference(ValueError):
    """Raised when a user supplied episode reference cannot be understood."""

    def __init__(self, ref: str, reason: str = ""):
        self.ref = ref
        self.reason = reason
        message = f'Invalid episode reference: "{ref}"'
        if reason:
            message += f" ({reason})"
        super().__init__(f"{message}. {REFERENCE_HELP}")


# A season number and the episodes referenced inside it
class EpisodeRef(NamedTuple):
    season: int
    episodes: Tuple[int, ...]

    def pairs(self) -> List[Tuple[int, int]]:
        return [(self.season, episode) for episode in self.episodes]

    def __str__(self) -> str:
        return format_episode_ref(self)


def _to_number(ref: str, text: str, what: str) -> int:
    try:
        number = int(text)
    except ValueError:
        raise InvalidEpisodeReference(ref, f"{what} is not a number")
    if number < 1:
        raise InvalidEpisodeReference(ref, f"{what} must be 1 or greater")
    return number


def _expand_range(ref: str, start_text: str, end_text: str) -> Tuple[int, ...]:
    start = _to_number(ref, start_text, "range start")
    end = _to_number(ref, end_text, "range end")
    if end < start:
        raise InvalidEpisodeReference(ref, f"range end {end} is before start {start}")
    return tuple(range(start, end + 1))


def parse_episode_ref(ref: str, default_season: int = 1) -> EpisodeRef:
    """
    Parse one episode reference into an EpisodeRef.

    Recognized forms (case-insensitive, surrounding whitespace ignored):
    - "S01E05": season 1, episode 5
    - "1x05": season 1, episode 5
    - "1.5": season 1, episode 5
    - "5": episode 5 of default_season
    - "1-5" or "1:5": episodes 1 to 5 of default_season

    Args:
        ref: The reference typed by the user.
        default_season: Season used by the bare number and range forms.

    Returns:
        EpisodeRef with a non-empty, ascending episode tuple.

    Raises:
        InvalidEpisodeReference: Nothing matched, or a number is below 1, or a
            range runs backwards.
    """
    if ref is None:
        raise InvalidEpisodeReference("", "empty reference")
    clean_ref = ref.strip().lower()
    if not clean_ref:
        raise InvalidEpisodeReference(ref, "empty reference")

    for regex in (SEASON_EPISODE_REGEX, SEASON_X_EPISODE_REGEX, SEASON_DOT_EPISODE_REGEX):
        res = regex.match(clean_ref)
        if res is not None:
            season = _to_number(ref, res.group(1), "season")
            episode = _to_number(ref, res.group(2), "episode")
            return EpisodeRef(season, (episode,))

    # The remaining forms take their season from the caller
    if isinstance(default_season, bool) or not isinstance(default_season, int) or default_season < 1:
        raise InvalidEpisodeReference(ref, f"season {default_season} must be 1 or greater")

    res = EPISODE_NUMBER_REGEX.match(clean_ref)
    if res is not None:
        return EpisodeRef(default_season, (_to_number(ref, res.group(1), "episode"),))

    res = EPISODE_RANGE_REGEX.match(clean_ref)
    if res is not None:
        return EpisodeRef(default_season, _expand_range(ref, res.group(1), res.group(2)))

    raise InvalidEpisodeReference(ref)


def _split_terms(refs: str) -> List[str]:
    return [term.strip() for term in (refs or "").split(",") if term.strip()]


def parse_multiple_episode_refs(
    refs: str, default_season: int = 1, strict: bool = True
) -> List[Tuple[int, int]]:
    """
    Parse a comma separated list of references that may span seasons,
    e.g. "1x05,1x06,2x01" or "1-5,7".

    With strict=True the first invalid term raises InvalidEpisodeReference.
    With strict=False invalid terms are skipped and logged.

    The result is sorted by (season, episode). When every term is a bare
    number or range ("5,5", "1-3,2") repeated pairs are collapsed; with an
    explicit season anywhere in the input they are kept as given.
    """
    result: List[Tuple[int, int]] = []
    numbers_only = True
    for term in _split_terms(refs):
        try:
            parsed = parse_episode_ref(term, default_season)
        except InvalidEpisodeReference as e:
            if strict:
                raise
            logging.debug(f"Skipping episode reference term '{term}': {e.reason or 'no match'}")
            continue
        if not _is_relative(term):
            numbers_only = False
        result.extend(parsed.pairs())
    if numbers_only:
        return sorted(set(result))
    return sorted(result)


def _is_relative(term: str) -> bool:
    clean_term = term.strip().lower()
    return bool(EPISODE_NUMBER_REGEX.match(clean_term) or EPISODE_RANGE_REGEX.match(clean_term))


def parse_episode_numbers(text: str, strict: bool = False) -> List[int]:
    """
    Parse episode numbers within a single season: "1,2,3", "1-5", "1,3-5,7".

    Only bare numbers and ranges are accepted here. Duplicates are removed and
    the numbers come back ascending.

    :param text: Comma separated numbers and ranges
    :param strict: Raise on the first invalid term instead of skipping it
    :return: Sorted list of unique episode numbers (may be empty when lenient)
    """
    episodes = set()
    for term in _split_terms(text):
        clean_term = term.lower()
        try:
            res = EPISODE_NUMBER_REGEX.match(clean_term)
            if res is not None:
                episodes.add(_to_number(term, res.group(1), "episode"))
                continue
            res = EPISODE_RANGE_REGEX.match(clean_term)
            if res is not None:
                episodes.update(_expand_range(term, res.group(1), res.group(2)))
                continue
            raise InvalidEpisodeReference(term, "expected an episode number or range")
        except InvalidEpisodeReference as e:
            if strict:
                raise
            logging.debug(f"Skipping episode number term '{term}': {e.reason}")
    return sorted(episodes)


def format_episode_ref(ref: EpisodeRef) -> str:
    """
    Canonical text for an EpisodeRef.

    Parsing the returned text with default_season=ref.season gives back ref.
    """
    episodes = list(ref.episodes)
    if len(episodes) == 1:
        return f"S{ref.season:02d}E{episodes[0]:02d}"
    if episodes and episodes == list(range(episodes[0], episodes[-1] + 1)):
        return f"{episodes[0]}-{episodes[-1]}"
    return ",".join(f"S{ref.season:02d}E{episode:02d}" for episode in episodes)


def describe_episodes(pairs: Iterable[Tuple[int, int]]) -> str:
    """
    Short display text for a list of (season, episode) pairs, grouped by season.

    Example: [(1, 1), (1, 2), (1, 3), (2, 5)] -> "S1E01-E03, S2E05"
    """
    seasons = {}
    for season, episode in pairs:
        seasons.setdefault(season, set()).add(episode)

    parts = []
    for season in sorted(seasons):
        episodes = sorted(seasons[season])
        if len(episodes) == 1:
            parts.append(f"S{season}E{episodes[0]:02d}")
        elif episodes == list(range(episodes[0], episodes[-1] + 1)):
            parts.append(f"S{season}E{episodes[0]:02d}-E{episodes[-1]:02d}")
        else:
            parts.append(f"S{season}" + ",".join(f"E{episode:02d}" for episode in episodes))
    return ", ".join(parts)
