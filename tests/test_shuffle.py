"""
Tests for season-wide and single-week shuffling.
"""

import random
import time
from collections import Counter
from itertools import combinations

import pytest

from kpileague.errors import InvalidRosterError
from kpileague.league import generate_matchups
from kpileague.models import Competitor
from kpileague.shuffle import (
    greedy_pairs,
    least_repeat_pairs,
    minimum_repeat_pairs,
    repeat_floor,
    shuffle_season,
    shuffle_week,
)


def _pair_counts(weeks):
    counts = Counter()
    for matchups in weeks.values():
        for matchup in matchups:
            counts[matchup.pair] += 1
    return counts


class TestPairSelection:
    """Pair choice for a single week."""

    def test_greedy_prefers_roster_order_on_ties(self):
        assert greedy_pairs(["A", "B", "C", "D"], Counter()) == [("A", "B"), ("C", "D")]

    def test_greedy_avoids_seen_pairs(self):
        counts = Counter({frozenset(("A", "B")): 1, frozenset(("C", "D")): 1})
        assert greedy_pairs(["A", "B", "C", "D"], counts) == [("A", "C"), ("B", "D")]

    def test_search_repairs_forced_repeat(self):
        """Greedy would strand the last two players together again."""
        ids = ["A", "B", "C", "D", "E", "F"]
        counts = Counter({frozenset(pair): 1 for pair in [("A", "B"), ("C", "D"), ("E", "F"), ("A", "C"), ("B", "D")]})
        pairs = minimum_repeat_pairs(ids, counts)
        assert all(counts[frozenset(pair)] == 0 for pair in pairs)
        assert sorted(player for pair in pairs for player in pair) == ids

    def test_odd_roster_rejected(self):
        with pytest.raises(InvalidRosterError):
            minimum_repeat_pairs(["A", "B", "C"], Counter())

    def test_floor_from_least_used_partner(self):
        counts = Counter({frozenset(pair): 1 for pair in combinations("ABCD", 2)})
        counts[frozenset("AB")] = 2
        assert repeat_floor(list("ABCD"), counts) == (1, 2)
        assert repeat_floor(list("ABCD"), Counter()) == (0, 0)

    def test_saturated_history_keeps_greedy(self):
        """When everyone has met everyone, greedy already sits on the floor and is returned as is."""
        ids = [f"p{i:02d}" for i in range(20)]
        counts = Counter({frozenset(pair): 1 for pair in combinations(ids, 2)})
        assert minimum_repeat_pairs(ids, counts) == greedy_pairs(ids, counts)

    def test_exhausted_budget_still_pairs_everyone(self):
        """A search cut short returns the best complete pairing it reached."""
        ids = [f"p{i:02d}" for i in range(12)]
        counts = Counter({frozenset(pair): 1 + (index % 3) for index, pair in enumerate(combinations(ids, 2))})
        pairs = least_repeat_pairs(ids, counts, budget=1)
        assert len(pairs) == 6
        assert sorted(player for pair in pairs for player in pair) == ids


class TestShuffleSeason:
    """Rebuilding the regular season."""

    @pytest.mark.parametrize("size", [4, 6])
    def test_full_cycle_has_no_repeats(self, make_league, size):
        """With N-1 weeks every pairing happens exactly once."""
        league = make_league(size=size, regular_weeks=size - 1)
        weeks = shuffle_season(league.storage, "s1")

        counts = _pair_counts(weeks)
        assert set(counts) == {frozenset(pair) for pair in combinations(league.ids, 2)}
        assert set(counts.values()) == {1}

    def test_eight_players_spread_evenly(self, make_league):
        league = make_league(size=8, regular_weeks=10)
        weeks = shuffle_season(league.storage, "s1")

        assert sorted(weeks) == list(range(1, 11))
        assert max(_pair_counts(weeks).values()) <= 2
        for matchups in weeks.values():
            players = [cid for m in matchups for cid in (m.competitor_a, m.competitor_b)]
            assert sorted(players) == sorted(league.ids)

    @pytest.mark.parametrize("size, regular_weeks", [(14, 15), (16, 20)])
    def test_seasons_past_the_cycle_finish_quickly(self, make_league, size, regular_weeks):
        """Weeks where a repeat is unavoidable do not trigger an unbounded search."""
        league = make_league(size=size, regular_weeks=regular_weeks)
        started = time.perf_counter()
        weeks = shuffle_season(league.storage, "s1")
        elapsed = time.perf_counter() - started

        assert elapsed < 5.0
        assert sorted(weeks) == list(range(1, regular_weeks + 1))
        for matchups in weeks.values():
            players = [cid for m in matchups for cid in (m.competitor_a, m.competitor_b)]
            assert sorted(players) == sorted(league.ids)

    def test_reuses_existing_records(self, make_league):
        """Existing matchups are patched in place rather than recreated."""
        league = make_league(size=4, regular_weeks=3)
        original = {m.id for m in generate_matchups(league.storage, "s1", 1)}
        weeks = shuffle_season(league.storage, "s1")

        assert {m.id for m in weeks[1]} == original
        assert all(m.score_a == 0.0 and m.score_b == 0.0 for m in weeks[1])

    def test_surplus_records_removed(self, make_league):
        league = make_league(size=6, regular_weeks=5)
        generate_matchups(league.storage, "s1", 1)
        league.storage.save_competitor(league.roster[5].model_copy(update={"slot": None}))
        league.storage.save_competitor(league.roster[4].model_copy(update={"slot": None}))

        weeks = shuffle_season(league.storage, "s1")
        assert len(weeks[1]) == 2
        assert len(league.storage.get_matchups("s1", 1)) == 2

    def test_observers_left_out(self, make_league):
        league = make_league(size=4, regular_weeks=3)
        league.storage.save_competitor(Competitor(id="boss", name="Boss", slot=9, role="observer"))
        weeks = shuffle_season(league.storage, "s1")
        assert not any(m.involves("boss") for matchups in weeks.values() for m in matchups)


class TestShuffleWeek:
    """Random re-pairing of one week."""

    def test_same_players_new_pairs(self, make_league):
        league = make_league(size=8, regular_weeks=7)
        before = generate_matchups(league.storage, "s1", 2)
        after = shuffle_week(league.storage, "s1", 2, rng=random.Random(7))

        assert {m.id for m in after} == {m.id for m in before}
        players = sorted(cid for m in after for cid in (m.competitor_a, m.competitor_b))
        assert players == sorted(league.ids)
        assert all(m.week == 2 and not m.is_playoff for m in after)

    def test_seeded_shuffle_is_reproducible(self, make_league):
        league = make_league(size=8, regular_weeks=7)
        generate_matchups(league.storage, "s1", 2)
        first = [m.pair for m in shuffle_week(league.storage, "s1", 2, rng=random.Random(3))]
        generate_matchups(league.storage, "s1", 2, overwrite=True)
        second = [m.pair for m in shuffle_week(league.storage, "s1", 2, rng=random.Random(3))]
        assert first == second

    def test_empty_week(self, make_league):
        league = make_league(size=4)
        assert shuffle_week(league.storage, "s1", 3) == []
