from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from .config import PLAYOFF_SEEDS
from .errors import InvalidRosterError
from .models import Competitor, Matchup, Season, StandingEntry
from .standings import compute_standings
from .storage import LeagueStorage

logger = logging.getLogger(__name__)

# Round 1: seeds 1 and 2 sit out. Round 2: each bye seed meets the winner of
# the round-1 match listed beside it. Round 3: the two round-2 winners.
FIRST_ROUND = ((3, 6), (4, 5))
SECOND_ROUND = ((1, FIRST_ROUND[0]), (2, FIRST_ROUND[1]))


def _round_label(round_index: int) -> str:
    return ["Quarterfinals", "Semifinals", "Final"][round_index - 1]


def seed_competitors(standings: Sequence[StandingEntry], seeds: int = PLAYOFF_SEEDS) -> Dict[int, str]:
    """Seed number -> competitor id, ordered by wins then points."""
    ordered = sorted(standings, key=lambda entry: (-entry.wins, -entry.total_points))
    if len(ordered) < seeds:
        raise InvalidRosterError(f"{seeds} competitors are needed to seed the playoffs, got {len(ordered)}.")
    return {index: entry.competitor_id for index, entry in enumerate(ordered[:seeds], start=1)}


def playoff_seeds(storage: LeagueStorage, season: Season, roster: Sequence[Competitor]) -> Dict[int, str]:
    """Seeds come from regular-season results only, so they never move once the bracket starts."""
    standings = compute_standings(
        storage,
        season.id,
        roster=list(roster),
        through_week=season.regular_weeks,
        regular_season_only=True,
    )
    return seed_competitors(standings)


def _round_winners(
    matchups: Sequence[Matchup],
    anchors: Sequence[str],
) -> Optional[List[str]]:
    """Winner of the match containing each anchor, or None if any is still undecided.

    Matches are located by competitor; if that is ambiguous they are taken in
    creation order.
    """
    if len(matchups) < len(anchors):
        return None
    located = [next((m for m in matchups if m.involves(anchor)), None) for anchor in anchors]
    if any(match is None for match in located) or len({match.id for match in located}) != len(anchors):
        located = list(matchups[: len(anchors)])
    winners = [match.winner_id for match in located]
    if any(winner is None for winner in winners):
        return None
    return winners


def _playoff_matchup(season: Season, week: int, home: str, away: str) -> Matchup:
    return Matchup(season_id=season.id, week=week, competitor_a=home, competitor_b=away, is_playoff=True)


def build_playoff_matchups(
    storage: LeagueStorage,
    season: Season,
    roster: Sequence[Competitor],
    week: int,
) -> List[Matchup]:
    """Pairings for one bracket round.

    Later rounds return an empty list until both matches of the previous
    round have a recorded winner; the caller retries once they do.
    """
    round_index = season.playoff_round(week)
    if round_index not in (1, 2, 3):
        raise ValueError(f"Week {week} is not a playoff week for season '{season.id}'.")
    seeds = playoff_seeds(storage, season, roster)

    if round_index == 1:
        pairs = [(seeds[high], seeds[low]) for high, low in FIRST_ROUND]
    elif round_index == 2:
        first_round = storage.get_matchups(season.id, week - 1)
        winners = _round_winners(first_round, [seeds[high] for high, _low in FIRST_ROUND])
        if winners is None:
            logger.info("Round 1 of season %s is not decided yet; semifinals not generated", season.id)
            return []
        pairs = [(seeds[bye_seed], winner) for (bye_seed, _source), winner in zip(SECOND_ROUND, winners)]
    else:
        semifinals = storage.get_matchups(season.id, week - 1)
        winners = _round_winners(semifinals, [seeds[bye_seed] for bye_seed, _source in SECOND_ROUND])
        if winners is None:
            logger.info("Semifinals of season %s are not decided yet; final not generated", season.id)
            return []
        pairs = [(winners[0], winners[1])]

    logger.info("Built %s for season %s week %s", _round_label(round_index), season.id, week)
    return [_playoff_matchup(season, week, home, away) for home, away in pairs]
