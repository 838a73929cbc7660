from typing import Iterable

from .view_models import SeasonState


def compute_season_state(number_of_seasons, watched_seasons: Iterable[int]) -> list[SeasonState]:
    """One entry per season, 1..number_of_seasons, flagged when watched.

    Stored numbers outside that range are not listed here; they stay visible
    in the raw watched set of the view model.
    """
    try:
        count = int(number_of_seasons or 0)
    except (TypeError, ValueError):
        count = 0
    watched = set(watched_seasons or ())
    return [SeasonState(season_number=n, watched=n in watched) for n in range(1, count + 1)]


def toggle_season(watched_seasons: Iterable[int], season_number: int) -> list[int]:
    """Flip membership of one season and return the full new set, sorted."""
    watched = set(watched_seasons or ())
    watched ^= {season_number}
    return sorted(watched)
