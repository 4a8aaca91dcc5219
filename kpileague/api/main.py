from __future__ import annotations

import io
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request, Response
from pydantic import BaseModel

from ..coach import CoachClient, build_metric_summary
from ..config import settings
from ..data_loader import load_submission_csv, submission_template_csv
from ..errors import CoachUnavailableError, LeagueError, MatchupConflictError, SeasonNotFoundError
from ..league import (
    generate_matchups,
    get_standings,
    list_week_matchups,
    recalculate_scores,
    shuffle_season,
    shuffle_week,
    submit_metrics,
)
from ..models import MetricSubmission
from ..scoring import describe_scoring, update_scoring_config
from ..storage import InMemoryStorage, JsonFileStorage

app = FastAPI(
    title="KPI League API",
    version="0.1.0",
    description="Head-to-head KPI league: weekly matchups, playoff bracket and scoring.",
)

STORAGE: Optional[InMemoryStorage] = None
COACH: Optional[CoachClient] = None


class SubmissionIn(BaseModel):
    competitor_id: str
    metric_id: str
    week: int
    value: float


def _ensure_storage() -> InMemoryStorage:
    global STORAGE  # pylint: disable=global-statement
    if STORAGE is None:
        STORAGE = JsonFileStorage(settings.league_id)
    return STORAGE


def _ensure_coach() -> CoachClient:
    global COACH  # pylint: disable=global-statement
    if COACH is None:
        COACH = CoachClient()
    return COACH


def _raise_http(err: Exception) -> None:
    if isinstance(err, SeasonNotFoundError):
        raise HTTPException(status_code=404, detail=str(err)) from err
    if isinstance(err, MatchupConflictError):
        raise HTTPException(status_code=409, detail=str(err)) from err
    raise HTTPException(status_code=400, detail=str(err)) from err


def _matchup_payload(matchups) -> List[Dict[str, Any]]:
    return [matchup.model_dump(mode="json") for matchup in matchups]


@app.get("/health")
def healthcheck() -> Dict[str, Any]:
    storage = _ensure_storage()
    return {
        "status": "ok",
        "league_id": settings.league_id,
        "seasons": len(storage.seasons),
        "competitors": len(storage.competitors),
    }


@app.get("/settings/scoring")
def scoring_settings() -> Dict[str, Any]:
    return describe_scoring()


@app.put("/settings/scoring")
def update_scoring_settings(
    default_strategy: Optional[str] = Body(None, embed=True),
    divisors: Optional[Dict[str, float]] = Body(None, embed=True),
) -> Dict[str, Any]:
    try:
        return update_scoring_config(default_strategy=default_strategy, divisors=divisors)
    except ValueError as err:
        raise HTTPException(status_code=400, detail=str(err)) from err


@app.get("/metrics/template.csv")
def submission_template() -> Response:
    csv_text = submission_template_csv(_ensure_storage().list_metrics())
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="kpi_template.csv"'},
    )


@app.get("/seasons/{season_id}/standings")
def standings_endpoint(season_id: str) -> Dict[str, Any]:
    try:
        standings = get_standings(_ensure_storage(), season_id)
    except LeagueError as err:
        _raise_http(err)
    return {"season_id": season_id, "standings": [entry.model_dump() for entry in standings]}


@app.get("/seasons/{season_id}/weeks/{week}/matchups")
def week_matchups_endpoint(season_id: str, week: int) -> Dict[str, Any]:
    try:
        matchups = list_week_matchups(_ensure_storage(), season_id, week)
    except LeagueError as err:
        _raise_http(err)
    return {"season_id": season_id, "week": week, "matchups": matchups}


@app.post("/seasons/{season_id}/weeks/{week}/matchups/generate")
def generate_endpoint(
    season_id: str,
    week: int,
    overwrite: bool = Query(False, description="Replace matchups that already exist for the week."),
) -> Dict[str, Any]:
    try:
        matchups = generate_matchups(_ensure_storage(), season_id, week, overwrite=overwrite)
    except LeagueError as err:
        _raise_http(err)
    return {
        "season_id": season_id,
        "week": week,
        "pending": not matchups,
        "matchups": _matchup_payload(matchups),
    }


@app.post("/seasons/{season_id}/weeks/{week}/recalculate")
def recalculate_endpoint(season_id: str, week: int) -> Dict[str, Any]:
    try:
        matchups = recalculate_scores(_ensure_storage(), season_id, week)
    except LeagueError as err:
        _raise_http(err)
    return {"message": f"Scores recalculated for week {week}", "matchups": _matchup_payload(matchups)}


@app.post("/seasons/{season_id}/weeks/{week}/shuffle")
def shuffle_week_endpoint(season_id: str, week: int) -> Dict[str, Any]:
    try:
        matchups = shuffle_week(_ensure_storage(), season_id, week)
    except LeagueError as err:
        _raise_http(err)
    return {"season_id": season_id, "week": week, "matchups": _matchup_payload(matchups)}


@app.post("/seasons/{season_id}/shuffle")
def shuffle_season_endpoint(season_id: str) -> Dict[str, Any]:
    try:
        weeks = shuffle_season(_ensure_storage(), season_id)
    except LeagueError as err:
        _raise_http(err)
    return {
        "season_id": season_id,
        "weeks": {str(week): _matchup_payload(matchups) for week, matchups in weeks.items()},
    }


@app.post("/seasons/{season_id}/submissions")
def submissions_endpoint(season_id: str, payload: List[SubmissionIn] = Body(...)) -> Dict[str, Any]:
    storage = _ensure_storage()
    try:
        storage.get_season(season_id)
        stored = submit_metrics(
            storage,
            [MetricSubmission(season_id=season_id, **item.model_dump()) for item in payload],
        )
    except LeagueError as err:
        _raise_http(err)
    return {"stored": len(stored)}


@app.post("/seasons/{season_id}/weeks/{week}/competitors/{competitor_id}/submissions/csv")
async def submissions_csv_endpoint(season_id: str, week: int, competitor_id: str, request: Request) -> Dict[str, Any]:
    """Accepts a raw "KPI Name,Value" CSV body for one competitor-week."""
    storage = _ensure_storage()
    body = (await request.body()).decode("utf-8-sig")
    if competitor_id not in {competitor.id for competitor in storage.list_competitors()}:
        raise HTTPException(status_code=404, detail=f"Unknown competitor id '{competitor_id}'")
    try:
        storage.get_season(season_id)
        parsed = load_submission_csv(io.StringIO(body), storage.list_metrics(), competitor_id, season_id, week)
        stored = submit_metrics(storage, parsed)
    except LeagueError as err:
        _raise_http(err)
    except ValueError as err:
        raise HTTPException(status_code=400, detail=str(err)) from err
    return {"stored": len(stored), "metrics": [submission.metric_id for submission in stored]}


@app.post("/seasons/{season_id}/weeks/{week}/competitors/{competitor_id}/coach")
def coach_endpoint(season_id: str, week: int, competitor_id: str) -> Dict[str, Any]:
    storage = _ensure_storage()
    try:
        storage.get_season(season_id)
        summary = build_metric_summary(storage, competitor_id, season_id, week)
    except LeagueError as err:
        _raise_http(err)
    except ValueError as err:
        raise HTTPException(status_code=404, detail=str(err)) from err
    try:
        feedback = _ensure_coach().request_feedback(summary)
    except CoachUnavailableError as err:
        raise HTTPException(status_code=502, detail=str(err)) from err
    return {"summary": summary, "feedback": feedback}
