from __future__ import annotations

from typing import List, Sequence, Tuple

from .errors import InvalidRosterError
from .models import Competitor, Matchup, Season

Pairing = Tuple[str, str]


def active_roster(competitors: Sequence[Competitor]) -> List[Competitor]:
    """Scheduled competitors ordered by slot number."""
    return sorted((c for c in competitors if c.is_active), key=lambda c: c.slot)


def ensure_pairable(roster: Sequence[object]) -> None:
    if len(roster) < 2:
        raise InvalidRosterError(f"At least 2 active competitors are needed to schedule, got {len(roster)}.")
    if len(roster) % 2:
        raise InvalidRosterError(
            f"The active roster has {len(roster)} competitors; pairing requires an even roster. "
            "Assign or clear a slot number before scheduling."
        )


def rotation_pairs(competitor_ids: Sequence[str], week: int) -> List[Pairing]:
    """Circle-method pairings for one week.

    The first competitor stays fixed while the rest rotate one position per
    week, so weeks 1..N-1 pair everyone with everyone exactly once.
    """
    ensure_pairable(competitor_ids)
    team_count = len(competitor_ids)
    anchor, rest = competitor_ids[0], list(competitor_ids[1:])
    shift = (week - 1) % len(rest)
    rotated = rest[len(rest) - shift:] + rest[: len(rest) - shift]
    positions = [anchor, *rotated]
    return [(positions[index], positions[team_count - 1 - index]) for index in range(team_count // 2)]


def round_robin_pairs(competitor_ids: Sequence[str], week: int, regular_weeks: int) -> List[Pairing]:
    """Pairings for a regular-season week, including the week-1 rematch rule."""
    if week < 1 or week > regular_weeks:
        raise ValueError(f"Week {week} is not a regular-season week (1-{regular_weeks}).")
    ensure_pairable(competitor_ids)
    rematch_week = len(competitor_ids)
    if week == rematch_week:
        return rotation_pairs(competitor_ids, 1)
    return rotation_pairs(competitor_ids, week)


def build_round_robin_matchups(season: Season, roster: Sequence[Competitor], week: int) -> List[Matchup]:
    competitor_ids = [competitor.id for competitor in roster]
    return [
        Matchup(season_id=season.id, week=week, competitor_a=home, competitor_b=away, is_playoff=False)
        for home, away in round_robin_pairs(competitor_ids, week, season.regular_weeks)
    ]
