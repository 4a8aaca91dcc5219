from __future__ import annotations

from typing import Callable, List

import pytest

from kpileague.models import Competitor, MetricDefinition, MetricSubmission, Season
from kpileague.storage import InMemoryStorage


class League:
    """An in-memory league with a slotted roster, ready for scheduling."""

    def __init__(self, storage: InMemoryStorage, season: Season, roster: List[Competitor]) -> None:
        self.storage = storage
        self.season = season
        self.roster = roster

    @property
    def ids(self) -> List[str]:
        return [competitor.id for competitor in self.roster]

    def metric(self, name: str, weight: float = 1.0, formula: str | None = None) -> MetricDefinition:
        return self.storage.save_metric(MetricDefinition(name=name, weight=weight, conversion_formula=formula))

    def submit(self, competitor_id: str, metric: MetricDefinition, week: int, value: float) -> MetricSubmission:
        submission = MetricSubmission(
            competitor_id=competitor_id, metric_id=metric.id, season_id=self.season.id, week=week, value=value
        )
        self.storage.upsert_submissions([submission])
        return submission

    def set_current_week(self, week: int) -> None:
        self.season = self.storage.save_season(self.season.model_copy(update={"current_week": week}))


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def make_league(storage: InMemoryStorage) -> Callable[..., League]:
    def factory(size: int = 4, regular_weeks: int = 10, **season_fields) -> League:
        roster = [
            storage.save_competitor(Competitor(id=f"c{slot}", name=f"Rep {slot}", slot=slot))
            for slot in range(1, size + 1)
        ]
        capacity = size if size % 2 == 0 else size + 1
        season = storage.save_season(
            Season(id="s1", regular_weeks=regular_weeks, active_slots=max(capacity, 2), **season_fields)
        )
        return League(storage, season, roster)

    return factory
