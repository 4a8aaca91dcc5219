from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Set, Tuple

from .bracket import build_playoff_matchups
from .errors import MatchupConflictError, WeekOutOfRangeError
from .models import Matchup, MetricSubmission, Season, StandingEntry
from .schedule import active_roster, build_round_robin_matchups
from .scoring import recalculate_scores
from .shuffle import shuffle_season, shuffle_week
from .standings import compute_standings
from .storage import LeagueStorage

logger = logging.getLogger(__name__)

__all__ = [
    "generate_matchups",
    "get_standings",
    "list_week_matchups",
    "recalculate_scores",
    "shuffle_season",
    "shuffle_week",
    "submit_metrics",
]


def _require_week(season: Season, week: int) -> None:
    if week < 1 or week > season.total_weeks:
        raise WeekOutOfRangeError(week, season.total_weeks)


def generate_matchups(
    storage: LeagueStorage,
    season_id: str,
    week: int,
    overwrite: bool = False,
) -> List[Matchup]:
    """Schedule a week and score it straight away.

    Regular-season weeks use the round-robin rotation, later weeks the playoff
    bracket. Existing matchups are only replaced when ``overwrite`` is set, and
    only once the replacement has been built, so a rejected roster or an
    undecided previous playoff round leaves the week untouched.
    """
    season = storage.get_season(season_id)
    _require_week(season, week)

    existing = storage.get_matchups(season_id, week)
    if existing and not overwrite:
        raise MatchupConflictError(season_id, week)

    roster = active_roster(storage.list_competitors())
    if season.is_playoff_week(week):
        planned = build_playoff_matchups(storage, season, roster, week)
        if not planned:
            return []
    else:
        planned = build_round_robin_matchups(season, roster, week)

    if existing:
        storage.delete_matchups(season_id, week)
        logger.info("Removed %d existing matchups for season %s week %s", len(existing), season_id, week)
    storage.create_matchups(planned)
    logger.info("Generated %d matchups for season %s week %s", len(planned), season_id, week)
    return recalculate_scores(storage, season_id, week)


def get_standings(storage: LeagueStorage, season_id: str) -> List[StandingEntry]:
    return compute_standings(storage, season_id)


def submit_metrics(storage: LeagueStorage, submissions: Iterable[MetricSubmission]) -> List[MetricSubmission]:
    """Store submissions, then rescore every week they touch."""
    stored = storage.upsert_submissions(submissions)
    affected: Set[Tuple[str, int]] = {(sub.season_id, sub.week) for sub in stored}
    for season_id, week in sorted(affected):
        recalculate_scores(storage, season_id, week)
    logger.info("Stored %d metric submissions across %d season-weeks", len(stored), len(affected))
    return stored


def list_week_matchups(storage: LeagueStorage, season_id: str, week: int) -> List[Dict[str, Any]]:
    """A week's matchups with competitor names filled in."""
    storage.get_season(season_id)
    names = {competitor.id: competitor.name for competitor in storage.list_competitors()}
    payload: List[Dict[str, Any]] = []
    for matchup in storage.get_matchups(season_id, week):
        entry = matchup.model_dump(mode="json")
        entry["competitor_a_name"] = names.get(matchup.competitor_a)
        entry["competitor_b_name"] = names.get(matchup.competitor_b)
        entry["winner_name"] = names.get(matchup.winner_id) if matchup.winner_id else None
        payload.append(entry)
    return payload
