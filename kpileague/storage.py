from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from .config import settings
from .errors import SeasonNotFoundError
from .models import Competitor, Matchup, MetricDefinition, MetricSubmission, Season

logger = logging.getLogger(__name__)

SubmissionKey = Tuple[str, str, str, int]


class LeagueStorage(Protocol):
    """Durable store the engine reads snapshots from and writes results to."""

    def get_season(self, season_id: str) -> Season: ...

    def save_season(self, season: Season) -> Season: ...

    def list_competitors(self) -> List[Competitor]: ...

    def save_competitor(self, competitor: Competitor) -> Competitor: ...

    def list_metrics(self) -> List[MetricDefinition]: ...

    def save_metric(self, metric: MetricDefinition) -> MetricDefinition: ...

    def get_matchups(self, season_id: str, week: int) -> List[Matchup]: ...

    def list_matchups(self, season_id: str) -> List[Matchup]: ...

    def create_matchups(self, matchups: Iterable[Matchup]) -> List[Matchup]: ...

    def update_matchup(self, matchup_id: str, **fields: Any) -> Matchup: ...

    def delete_matchup(self, matchup_id: str) -> None: ...

    def delete_matchups(self, season_id: str, week: int) -> None: ...

    def get_submissions(self, competitor_id: str, season_id: str, week: int) -> List[MetricSubmission]: ...

    def upsert_submissions(self, submissions: Iterable[MetricSubmission]) -> List[MetricSubmission]: ...


class InMemoryStorage:
    def __init__(self) -> None:
        self.seasons: Dict[str, Season] = {}
        self.competitors: Dict[str, Competitor] = {}
        self.metrics: Dict[str, MetricDefinition] = {}
        self.matchups: Dict[str, Matchup] = {}
        self.submissions: Dict[SubmissionKey, MetricSubmission] = {}

    def _commit(self) -> None:
        """Hook for subclasses that persist after every write."""

    def get_season(self, season_id: str) -> Season:
        try:
            return self.seasons[season_id]
        except KeyError as exc:
            raise SeasonNotFoundError(season_id) from exc

    def active_season(self) -> Optional[Season]:
        active = [season for season in self.seasons.values() if season.is_active]
        return active[-1] if active else None

    def save_season(self, season: Season) -> Season:
        self.seasons[season.id] = season
        self._commit()
        return season

    def list_competitors(self) -> List[Competitor]:
        return list(self.competitors.values())

    def save_competitor(self, competitor: Competitor) -> Competitor:
        if competitor.slot is not None:
            for other in self.competitors.values():
                if other.id != competitor.id and other.slot == competitor.slot:
                    raise ValueError(f"Slot {competitor.slot} is already assigned to {other.name}.")
        self.competitors[competitor.id] = competitor
        self._commit()
        return competitor

    def list_metrics(self) -> List[MetricDefinition]:
        return sorted(self.metrics.values(), key=lambda metric: metric.display_order)

    def save_metric(self, metric: MetricDefinition) -> MetricDefinition:
        self.metrics[metric.id] = metric
        self._commit()
        return metric

    def get_matchups(self, season_id: str, week: int) -> List[Matchup]:
        return [m for m in self.matchups.values() if m.season_id == season_id and m.week == week]

    def list_matchups(self, season_id: str) -> List[Matchup]:
        return [m for m in self.matchups.values() if m.season_id == season_id]

    def create_matchups(self, matchups: Iterable[Matchup]) -> List[Matchup]:
        batch = list(matchups)
        seen = set()
        for matchup in batch:
            if matchup.id in self.matchups or matchup.id in seen:
                raise ValueError(f"Duplicate matchup id '{matchup.id}'.")
            seen.add(matchup.id)
        for matchup in batch:
            self.matchups[matchup.id] = matchup
        if batch:
            self._commit()
        return batch

    def update_matchup(self, matchup_id: str, **fields: Any) -> Matchup:
        try:
            current = self.matchups[matchup_id]
        except KeyError as exc:
            raise KeyError(f"Unknown matchup id '{matchup_id}'") from exc
        updated = Matchup.model_validate({**current.model_dump(), **fields})
        self.matchups[matchup_id] = updated
        self._commit()
        return updated

    def delete_matchup(self, matchup_id: str) -> None:
        if self.matchups.pop(matchup_id, None) is not None:
            self._commit()

    def delete_matchups(self, season_id: str, week: int) -> None:
        doomed = [m.id for m in self.get_matchups(season_id, week)]
        for matchup_id in doomed:
            del self.matchups[matchup_id]
        if doomed:
            self._commit()

    def get_submissions(self, competitor_id: str, season_id: str, week: int) -> List[MetricSubmission]:
        return [
            sub
            for (cid, _metric, sid, wk), sub in self.submissions.items()
            if cid == competitor_id and sid == season_id and wk == week
        ]

    def upsert_submissions(self, submissions: Iterable[MetricSubmission]) -> List[MetricSubmission]:
        stored: List[MetricSubmission] = []
        for submission in submissions:
            self.submissions[submission.key] = submission
            stored.append(submission)
        if stored:
            self._commit()
        return stored

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seasons": [season.model_dump(mode="json") for season in self.seasons.values()],
            "competitors": [c.model_dump(mode="json") for c in self.competitors.values()],
            "metrics": [metric.model_dump(mode="json") for metric in self.metrics.values()],
            "matchups": [m.model_dump(mode="json") for m in self.matchups.values()],
            "submissions": [sub.model_dump(mode="json") for sub in self.submissions.values()],
        }

    def load_dict(self, raw: Dict[str, Any]) -> None:
        self.seasons = {s.id: s for s in (Season.model_validate(item) for item in raw.get("seasons", []))}
        self.competitors = {
            c.id: c for c in (Competitor.model_validate(item) for item in raw.get("competitors", []))
        }
        self.metrics = {
            m.id: m for m in (MetricDefinition.model_validate(item) for item in raw.get("metrics", []))
        }
        self.matchups = {m.id: m for m in (Matchup.model_validate(item) for item in raw.get("matchups", []))}
        self.submissions = {
            s.key: s for s in (MetricSubmission.model_validate(item) for item in raw.get("submissions", []))
        }


class JsonFileStorage(InMemoryStorage):
    """Keeps the whole league in one JSON document, rewritten after every write."""

    def __init__(self, league_id: str, path: Optional[Path] = None) -> None:
        super().__init__()
        self.league_id = league_id
        self.path = path or settings.league_path(league_id)
        if self.path.exists():
            with self.path.open("r", encoding="utf-8") as handle:
                self.load_dict(json.load(handle))
            logger.debug("Loaded league %s from %s", league_id, self.path)

    def _commit(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".json.tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(self.to_dict(), handle, indent=2)
        tmp_path.replace(self.path)
