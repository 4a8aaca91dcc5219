from __future__ import annotations

from typing import Dict, List, Optional

from .config import settings
from .models import Competitor, Matchup, StandingEntry
from .storage import LeagueStorage


def ranked_competitors(competitors: List[Competitor]) -> List[Competitor]:
    """Everyone who can hold a record: excluded roles never appear in standings."""
    return [c for c in competitors if c.role not in settings.excluded_roles]


def tally_record(competitor: Competitor, matchups: List[Matchup]) -> StandingEntry:
    entry = StandingEntry(competitor_id=competitor.id, name=competitor.name)
    for matchup in matchups:
        if not matchup.involves(competitor.id):
            continue
        if matchup.winner_id == competitor.id:
            entry.wins += 1
        elif matchup.winner_id is not None:
            entry.losses += 1
        entry.total_points += matchup.score_for(competitor.id) or 0.0
    return entry


def sort_standings(entries: List[StandingEntry]) -> List[StandingEntry]:
    ordered = sorted(entries, key=lambda item: (-item.wins, -item.total_points))
    for index, entry in enumerate(ordered, start=1):
        entry.rank = index
    return ordered


def compute_standings(
    storage: LeagueStorage,
    season_id: str,
    roster: Optional[List[Competitor]] = None,
    through_week: Optional[int] = None,
    regular_season_only: bool = False,
) -> List[StandingEntry]:
    """Wins, losses and points per competitor from matchups before the current week.

    The in-progress week never counts, so a competitor's ongoing match cannot
    affect their own qualification. ``through_week`` can only tighten that cutoff.
    """
    season = storage.get_season(season_id)
    cutoff = season.current_week - 1
    if through_week is not None:
        cutoff = min(cutoff, through_week)
    if regular_season_only:
        cutoff = min(cutoff, season.regular_weeks)

    if roster is None:
        roster = ranked_competitors(storage.list_competitors())
    counted = [m for m in storage.list_matchups(season_id) if m.week <= cutoff]

    entries: Dict[str, StandingEntry] = {}
    for competitor in roster:
        entries[competitor.id] = tally_record(competitor, counted)
    return sort_standings(list(entries.values()))
