from __future__ import annotations

import argparse
import logging
import random
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from kpileague.config import SCORING_STRATEGIES, settings  # noqa: E402
from kpileague.league import generate_matchups, submit_metrics  # noqa: E402
from kpileague.models import Competitor, MetricDefinition, MetricSubmission, Season  # noqa: E402
from kpileague.storage import JsonFileStorage  # noqa: E402

logger = logging.getLogger("seed_league")

DEFAULT_METRICS = (
    ("Sales Gross Profit", "$", 40.0, "value / 300"),
    ("Sales Revenue", "$", 30.0, "value / 3000"),
    ("Leads Talked To", "leads", 15.0, "value / 3"),
    ("Deals Closed", "deals", 15.0, None),
)
METRIC_RANGES = {
    "Sales Gross Profit": (3000, 12000),
    "Sales Revenue": (20000, 90000),
    "Leads Talked To": (15, 60),
    "Deals Closed": (1, 8),
}


def seed(storage: JsonFileStorage, competitors: int, regular_weeks: int, strategy: str, rng: random.Random) -> Season:
    metrics = [
        storage.save_metric(
            MetricDefinition(name=name, unit=unit, weight=weight, conversion_formula=formula, display_order=order)
        )
        for order, (name, unit, weight, formula) in enumerate(DEFAULT_METRICS)
    ]
    roster = [storage.save_competitor(Competitor(name=f"Rep {slot}", slot=slot)) for slot in range(1, competitors + 1)]
    storage.save_competitor(Competitor(name="Observer", slot=None, role="observer"))
    season = storage.save_season(
        Season(
            name="Demo Season",
            regular_weeks=regular_weeks,
            active_slots=competitors,
            scoring_strategy=strategy,
        )
    )

    generate_matchups(storage, season.id, 1)
    submissions = [
        MetricSubmission(
            competitor_id=competitor.id,
            metric_id=metric.id,
            season_id=season.id,
            week=1,
            value=float(rng.randint(*METRIC_RANGES[metric.name])),
        )
        for competitor in roster
        for metric in metrics
    ]
    submit_metrics(storage, submissions)
    return season


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo KPI league into the local JSON store.")
    parser.add_argument("--league-id", default=settings.league_id, help="League file name under the data dir.")
    parser.add_argument("--competitors", type=int, default=8, help="Number of slotted competitors (must be even).")
    parser.add_argument("--regular-weeks", type=int, default=10, help="Regular-season length in weeks.")
    parser.add_argument(
        "--strategy",
        choices=SCORING_STRATEGIES,
        default=settings.default_scoring_strategy,
        help="Scoring strategy for the seeded season.",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for the demo submissions.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    storage = JsonFileStorage(args.league_id)
    if storage.seasons:
        logger.info("League %s already has data at %s; nothing to do.", args.league_id, storage.path)
        return
    season = seed(storage, args.competitors, args.regular_weeks, args.strategy, random.Random(args.seed))
    logger.info("Seeded season %s with %d competitors into %s", season.id, args.competitors, storage.path)


if __name__ == "__main__":
    main()
