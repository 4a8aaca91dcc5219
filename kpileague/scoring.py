from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .config import SCORING_STRATEGIES, settings
from .formula import evaluate_conversion
from .models import Matchup, MetricDefinition, MetricSubmission
from .storage import LeagueStorage

logger = logging.getLogger(__name__)


def _active(metrics: Iterable[MetricDefinition]) -> List[MetricDefinition]:
    return [metric for metric in metrics if metric.is_active]


def latest_values(submissions: Iterable[MetricSubmission]) -> Dict[str, float]:
    """Metric id -> raw value, keeping only the most recent submission per metric."""
    latest: Dict[str, MetricSubmission] = {}
    for submission in submissions:
        current = latest.get(submission.metric_id)
        if current is None or submission.submitted_at >= current.submitted_at:
            latest[submission.metric_id] = submission
    return {metric_id: float(sub.value) for metric_id, sub in latest.items()}


class ScoringStrategy(ABC):
    """Turns one competitor's weekly submissions into a single point total."""

    name: str = ""

    def prepare(
        self,
        metrics: List[MetricDefinition],
        week_submissions: Dict[str, List[MetricSubmission]],
    ) -> None:
        """Look at the whole week before any competitor is scored. Most strategies don't need to."""

    @abstractmethod
    def score(self, metrics: List[MetricDefinition], submissions: List[MetricSubmission]) -> float:
        ...


class FixedDivisorStrategy(ScoringStrategy):
    name = "fixed_divisor"

    def __init__(self, divisors: Optional[Dict[str, float]] = None) -> None:
        self.divisors = dict(divisors) if divisors is not None else dict(settings.fallback_divisors)

    def contribution(self, metric: MetricDefinition, value: float) -> float:
        divisor = self.divisors.get(metric.name)
        if not divisor:
            return 0.0
        return value / float(divisor)

    def score(self, metrics: List[MetricDefinition], submissions: List[MetricSubmission]) -> float:
        values = latest_values(submissions)
        total = 0.0
        for metric in _active(metrics):
            if metric.id in values:
                total += self.contribution(metric, values[metric.id])
        return total


class FormulaStrategy(FixedDivisorStrategy):
    """Evaluates each metric's conversion expression, falling back to its fixed divisor."""

    name = "formula"

    def contribution(self, metric: MetricDefinition, value: float) -> float:
        expression = (metric.conversion_formula or "").strip()
        if not expression:
            return super().contribution(metric, value)
        return evaluate_conversion(expression, value)


class WeightedNormalizationStrategy(ScoringStrategy):
    """Min-max normalizes each metric across everyone playing that week, scaled by weight share."""

    name = "weighted_normalization"

    def __init__(self) -> None:
        self._ranges: Dict[str, Tuple[float, float]] = {}

    def prepare(
        self,
        metrics: List[MetricDefinition],
        week_submissions: Dict[str, List[MetricSubmission]],
    ) -> None:
        rows = [
            {"competitor_id": competitor_id, "metric_id": metric_id, "value": value}
            for competitor_id, submissions in week_submissions.items()
            for metric_id, value in latest_values(submissions).items()
        ]
        self._ranges = {}
        if not rows:
            return
        frame = pd.DataFrame(rows)
        bounds = frame.groupby("metric_id")["value"].agg(["min", "max"])
        for metric_id, row in bounds.iterrows():
            self._ranges[str(metric_id)] = (float(row["min"]), float(row["max"]))

    def score(self, metrics: List[MetricDefinition], submissions: List[MetricSubmission]) -> float:
        active = _active(metrics)
        total_weight = sum(metric.weight for metric in active)
        if total_weight <= 0:
            return 0.0
        values = latest_values(submissions)
        total = 0.0
        for metric in active:
            if metric.id not in values:
                continue
            value = values[metric.id]
            low, high = self._ranges.get(metric.id, (value, value))
            normalized = 0.5 if high == low else (value - low) / (high - low)
            total += normalized * (metric.weight / total_weight) * 100.0
        return total


_STRATEGY_TYPES = {
    FixedDivisorStrategy.name: FixedDivisorStrategy,
    FormulaStrategy.name: FormulaStrategy,
    WeightedNormalizationStrategy.name: WeightedNormalizationStrategy,
}


def build_strategy(name: Optional[str] = None) -> ScoringStrategy:
    """Instantiate the named strategy, or the deployment default."""
    resolved = settings.resolve_strategy_name(name)
    return _STRATEGY_TYPES[resolved]()


def decide_winner(matchup: Matchup, score_a: float, score_b: float) -> Optional[str]:
    if score_a > score_b:
        return matchup.competitor_a
    if score_b > score_a:
        return matchup.competitor_b
    return None


def recalculate_scores(
    storage: LeagueStorage,
    season_id: str,
    week: int,
    strategy: Optional[ScoringStrategy] = None,
) -> List[Matchup]:
    """Recompute and overwrite score and winner for every matchup in the week.

    Each call starts from the current submission snapshot, so repeating it is safe.
    """
    season = storage.get_season(season_id)
    matchups = storage.get_matchups(season_id, week)
    if not matchups:
        logger.debug("No matchups to score for season %s week %s", season_id, week)
        return []

    strategy = strategy or build_strategy(season.scoring_strategy)
    metrics = _active(storage.list_metrics())

    participants: List[str] = []
    for matchup in matchups:
        for competitor_id in (matchup.competitor_a, matchup.competitor_b):
            if competitor_id not in participants:
                participants.append(competitor_id)
    week_submissions = {
        competitor_id: storage.get_submissions(competitor_id, season_id, week) for competitor_id in participants
    }

    strategy.prepare(metrics, week_submissions)
    scores = {
        competitor_id: strategy.score(metrics, submissions)
        for competitor_id, submissions in week_submissions.items()
    }

    updated: List[Matchup] = []
    for matchup in matchups:
        score_a = scores[matchup.competitor_a]
        score_b = scores[matchup.competitor_b]
        winner_id = decide_winner(matchup, score_a, score_b)
        logger.debug("Matchup %s scored %.3f-%.3f (winner=%s)", matchup.id, score_a, score_b, winner_id)
        updated.append(storage.update_matchup(matchup.id, score_a=score_a, score_b=score_b, winner_id=winner_id))

    logger.info(
        "Recalculated %d matchups for season %s week %s using %s", len(updated), season_id, week, strategy.name
    )
    return updated


def describe_scoring() -> Dict[str, object]:
    return {
        "default_strategy": settings.default_scoring_strategy,
        "strategies": list(SCORING_STRATEGIES),
        "fallback_divisors": dict(settings.fallback_divisors),
    }


def load_scoring_overrides(path: Path | None = None) -> None:
    """Load persisted scoring overrides (if any) and apply them to global settings."""
    config_path = path or settings.scoring_config_path()
    if not config_path.exists():
        return

    with config_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)

    divisors = payload.get("divisors") or {}
    settings.fallback_divisors.update({str(name): float(value) for name, value in divisors.items()})
    default_strategy = payload.get("default")
    if default_strategy:
        settings.default_scoring_strategy = settings.resolve_strategy_name(default_strategy)


def persist_scoring_overrides(path: Path | None = None) -> None:
    config_path = path or settings.scoring_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "default": settings.default_scoring_strategy,
        "divisors": settings.fallback_divisors,
    }
    with config_path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=True)


def update_scoring_config(
    default_strategy: Optional[str] = None,
    divisors: Optional[Dict[str, float]] = None,
    path: Path | None = None,
) -> Dict[str, object]:
    if default_strategy:
        settings.default_scoring_strategy = settings.resolve_strategy_name(default_strategy)
    if divisors:
        for name, value in divisors.items():
            if float(value) <= 0:
                raise ValueError(f"Divisor for '{name}' must be positive.")
            settings.fallback_divisors[name] = float(value)
    persist_scoring_overrides(path)
    return describe_scoring()


# Load persisted overrides on import for convenience.
load_scoring_overrides()
