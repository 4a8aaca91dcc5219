from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import FrozenSet, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .config import PLAYOFF_ROUNDS, SCORING_STRATEGIES, settings


def _new_id() -> str:
    return uuid.uuid4().hex


class Competitor(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    slot: Optional[int] = None
    role: str = "competitor"

    @property
    def is_active(self) -> bool:
        """Only slotted competitors outside the excluded roles are scheduled."""
        return self.slot is not None and self.role not in settings.excluded_roles


class Season(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = "Season"
    regular_weeks: int = 10
    playoff_weeks: int = PLAYOFF_ROUNDS
    current_week: int = 1
    active_slots: int = 8
    is_active: bool = True
    scoring_strategy: Optional[str] = None

    @field_validator("active_slots")
    @classmethod
    def _even_capacity(cls, value: int) -> int:
        if value <= 0 or value % 2:
            raise ValueError("active_slots must be a positive even number.")
        return value

    @field_validator("playoff_weeks")
    @classmethod
    def _fixed_bracket(cls, value: int) -> int:
        if value != PLAYOFF_ROUNDS:
            raise ValueError(f"The playoff bracket always spans {PLAYOFF_ROUNDS} weeks.")
        return value

    @field_validator("scoring_strategy")
    @classmethod
    def _known_strategy(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in SCORING_STRATEGIES:
            raise ValueError(f"Unknown scoring strategy '{value}'. Known strategies: {', '.join(SCORING_STRATEGIES)}")
        return value

    @property
    def total_weeks(self) -> int:
        return self.regular_weeks + self.playoff_weeks

    def is_playoff_week(self, week: int) -> bool:
        return week > self.regular_weeks

    def playoff_round(self, week: int) -> int:
        return week - self.regular_weeks


class MetricDefinition(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    unit: Optional[str] = None
    weight: float = Field(default=1.0, ge=0.0)
    is_active: bool = True
    conversion_formula: Optional[str] = None
    display_order: int = 0


class MetricSubmission(BaseModel):
    competitor_id: str
    metric_id: str
    season_id: str
    week: int
    value: float
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> tuple:
        return (self.competitor_id, self.metric_id, self.season_id, self.week)


class Matchup(BaseModel):
    id: str = Field(default_factory=_new_id)
    season_id: str
    week: int
    competitor_a: str
    competitor_b: str
    score_a: Optional[float] = None
    score_b: Optional[float] = None
    winner_id: Optional[str] = None
    is_playoff: bool = False

    @model_validator(mode="after")
    def _distinct_sides(self) -> "Matchup":
        if self.competitor_a == self.competitor_b:
            raise ValueError("A matchup needs two different competitors.")
        return self

    @property
    def pair(self) -> FrozenSet[str]:
        return frozenset((self.competitor_a, self.competitor_b))

    def involves(self, competitor_id: str) -> bool:
        return competitor_id in (self.competitor_a, self.competitor_b)

    def score_for(self, competitor_id: str) -> Optional[float]:
        if competitor_id == self.competitor_a:
            return self.score_a
        if competitor_id == self.competitor_b:
            return self.score_b
        return None


class StandingEntry(BaseModel):
    competitor_id: str
    name: str
    wins: int = 0
    losses: int = 0
    total_points: float = 0.0
    rank: int = 0

    @property
    def record(self) -> str:
        return f"{self.wins}-{self.losses}"
