from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, FrozenSet, Tuple

from pydantic import BaseModel, Field

from .errors import UnknownStrategyError

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.getenv("KPILEAGUE_DATA_DIR", str(BASE_DIR / "data")))

SCORING_STRATEGIES: Tuple[str, ...] = ("fixed_divisor", "formula", "weighted_normalization")
PLAYOFF_SEEDS = 6
PLAYOFF_ROUNDS = 3


class Settings(BaseModel):
    data_dir: Path = DATA_DIR
    league_id: str = Field(default_factory=lambda: os.getenv("KPILEAGUE_LEAGUE_ID", "default"))
    default_scoring_strategy: str = Field(
        default_factory=lambda: os.getenv("KPILEAGUE_SCORING_STRATEGY", "fixed_divisor")
    )
    fallback_divisors: Dict[str, float] = {
        "Sales Gross Profit": 300.0,
        "Sales Revenue": 3000.0,
        "Leads Talked To": 3.0,
        "Deals Closed": 1.0,
    }
    excluded_roles: FrozenSet[str] = frozenset({"observer"})
    coach_api_key: str = Field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    coach_base_url: str = Field(
        default_factory=lambda: os.getenv("KPILEAGUE_COACH_BASE_URL", "https://api.openai.com/v1")
    )
    coach_model: str = Field(default_factory=lambda: os.getenv("KPILEAGUE_COACH_MODEL", "gpt-4o-mini"))

    def resolve_strategy_name(self, name: str | None = None) -> str:
        """Return the requested scoring strategy, falling back to the default."""
        if not name:
            name = self.default_scoring_strategy
        if name not in SCORING_STRATEGIES:
            known = ", ".join(SCORING_STRATEGIES)
            raise UnknownStrategyError(name, known)
        return name

    def leagues_dir(self) -> Path:
        return self.data_dir / "leagues"

    def league_path(self, league_id: str) -> Path:
        return self.leagues_dir() / f"{league_id}.json"

    def scoring_config_path(self) -> Path:
        return self.data_dir / "scoring_config.json"


settings = Settings()
