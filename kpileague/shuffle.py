from __future__ import annotations

import logging
import random
from collections import Counter
from itertools import combinations
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from .models import Matchup, Season
from .schedule import Pairing, active_roster, ensure_pairable
from .scoring import recalculate_scores
from .storage import LeagueStorage

logger = logging.getLogger(__name__)

PairCounts = Counter  # FrozenSet[str] -> times paired so far
Cost = Tuple[int, int]

SEARCH_NODE_BUDGET = 5000


def _pair_key(first: str, second: str) -> FrozenSet[str]:
    return frozenset((first, second))


def _cost(pairs: Sequence[Pairing], counts: PairCounts) -> Cost:
    seen = [counts[_pair_key(a, b)] for a, b in pairs]
    return (max(seen, default=0), sum(seen))


def greedy_pairs(competitor_ids: Sequence[str], counts: PairCounts) -> List[Pairing]:
    """Repeatedly take the unpaired pair with the lowest running count, first in roster order on ties."""
    unpaired = list(competitor_ids)
    pairs: List[Pairing] = []
    while len(unpaired) > 1:
        best: Optional[Pairing] = None
        best_count = 0
        for first, second in combinations(unpaired, 2):
            count = counts[_pair_key(first, second)]
            if best is None or count < best_count:
                best, best_count = (first, second), count
        pairs.append(best)
        unpaired.remove(best[0])
        unpaired.remove(best[1])
    return pairs


def repeat_floor(competitor_ids: Sequence[str], counts: PairCounts) -> Cost:
    """Lower bound on (worst repeat, total repeats) for any pairing of the roster.

    Nobody can be paired below their own least-used partner count, and each
    pair covers two competitors.
    """
    floors = [
        min(counts[_pair_key(first, other)] for other in competitor_ids if other != first)
        for first in competitor_ids
    ]
    return (max(floors, default=0), (sum(floors) + 1) // 2)


def least_repeat_pairs(
    competitor_ids: Sequence[str],
    counts: PairCounts,
    budget: int = SEARCH_NODE_BUDGET,
) -> List[Pairing]:
    """Branch-and-bound over perfect matchings, minimizing (worst repeat, total repeats).

    The search stops as soon as a pairing reaches ``repeat_floor``, or once
    ``budget`` nodes have been visited, returning the best pairing found.
    Partners are tried least-used first, so the first complete pairing is
    available after N/2 nodes.
    """
    floor = repeat_floor(competitor_ids, counts)
    best_cost: Optional[Cost] = None
    best_pairs: List[Pairing] = []
    visited = 0

    def visit(remaining: List[str], chosen: List[Pairing], worst: int, total: int) -> bool:
        nonlocal best_cost, best_pairs, visited
        visited += 1
        if best_cost is not None and (worst, total) >= best_cost:
            return False
        if not remaining:
            best_cost, best_pairs = (worst, total), list(chosen)
            return best_cost == floor
        if best_cost is not None and visited > budget:
            return True
        first, rest = remaining[0], remaining[1:]
        for partner in sorted(rest, key=lambda other: counts[_pair_key(first, other)]):
            count = counts[_pair_key(first, partner)]
            chosen.append((first, partner))
            left = [other for other in rest if other != partner]
            done = visit(left, chosen, max(worst, count), total + count)
            chosen.pop()
            if done:
                return True
        return False

    visit(list(competitor_ids), [], 0, 0)
    if visited > budget:
        logger.debug("Pairing search stopped after %d nodes at cost %s (floor %s)", visited, best_cost, floor)
    return best_pairs


def minimum_repeat_pairs(competitor_ids: Sequence[str], counts: PairCounts) -> List[Pairing]:
    """Greedy pairing, repaired by a bounded search when greedy misses the best achievable repeat count."""
    ensure_pairable(competitor_ids)
    pairs = greedy_pairs(competitor_ids, counts)
    greedy_cost = _cost(pairs, counts)
    if greedy_cost == repeat_floor(competitor_ids, counts):
        return pairs
    searched = least_repeat_pairs(competitor_ids, counts)
    if _cost(searched, counts) < greedy_cost:
        return searched
    return pairs


def apply_pairs(
    storage: LeagueStorage,
    season: Season,
    week: int,
    pairs: Sequence[Pairing],
    is_playoff: bool = False,
) -> List[Matchup]:
    """Write pairings into the week's existing records, matched by position.

    Missing records are created and surplus ones removed; scores are cleared.
    """
    existing = storage.get_matchups(season.id, week)
    for index, (home, away) in enumerate(pairs):
        if index < len(existing):
            storage.update_matchup(
                existing[index].id,
                competitor_a=home,
                competitor_b=away,
                score_a=None,
                score_b=None,
                winner_id=None,
            )
        else:
            storage.create_matchups(
                [Matchup(season_id=season.id, week=week, competitor_a=home, competitor_b=away, is_playoff=is_playoff)]
            )
    for surplus in existing[len(pairs):]:
        storage.delete_matchup(surplus.id)
    return storage.get_matchups(season.id, week)


def shuffle_season(storage: LeagueStorage, season_id: str) -> Dict[int, List[Matchup]]:
    """Rebuild every regular-season week from scratch, spreading pairings to avoid repeats."""
    season = storage.get_season(season_id)
    roster = active_roster(storage.list_competitors())
    competitor_ids = [competitor.id for competitor in roster]
    ensure_pairable(competitor_ids)

    counts: PairCounts = Counter()
    weeks: Dict[int, List[Matchup]] = {}
    for week in range(1, season.regular_weeks + 1):
        pairs = minimum_repeat_pairs(competitor_ids, counts)
        for home, away in pairs:
            counts[_pair_key(home, away)] += 1
        apply_pairs(storage, season, week, pairs)
        weeks[week] = recalculate_scores(storage, season_id, week)

    repeats = sum(1 for count in counts.values() if count > 1)
    logger.info(
        "Shuffled %d regular-season weeks for season %s (%d repeated pairings)",
        season.regular_weeks,
        season_id,
        repeats,
    )
    return weeks


def shuffle_week(
    storage: LeagueStorage,
    season_id: str,
    week: int,
    rng: Optional[random.Random] = None,
) -> List[Matchup]:
    """Randomly re-pair the competitors already scheduled in one week."""
    season = storage.get_season(season_id)
    existing = storage.get_matchups(season_id, week)
    if not existing:
        return []
    participants = [cid for matchup in existing for cid in (matchup.competitor_a, matchup.competitor_b)]
    (rng or random).shuffle(participants)
    pairs = [(participants[index], participants[index + 1]) for index in range(0, len(participants), 2)]
    apply_pairs(storage, season, week, pairs, is_playoff=existing[0].is_playoff)
    logger.info("Randomly shuffled %d matchups for season %s week %s", len(pairs), season_id, week)
    return recalculate_scores(storage, season_id, week)
