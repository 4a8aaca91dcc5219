from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from httpx import HTTPStatusError

from .config import settings
from .errors import CoachUnavailableError
from .scoring import latest_values
from .standings import compute_standings
from .storage import LeagueStorage

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an encouraging AI performance coach helping employees improve their KPIs."
FALLBACK_FEEDBACK = "Unable to generate feedback at this time."


def build_metric_summary(
    storage: LeagueStorage,
    competitor_id: str,
    season_id: str,
    week: int,
) -> Dict[str, Any]:
    """Per-metric values for one competitor-week plus their record.

    This is all the text-generation collaborator ever sees; no pairing data
    leaves the engine.
    """
    competitors = {c.id: c for c in storage.list_competitors()}
    competitor = competitors.get(competitor_id)
    if competitor is None:
        raise ValueError(f"Unknown competitor id '{competitor_id}'")

    values = latest_values(storage.get_submissions(competitor_id, season_id, week))
    metrics: List[Dict[str, Any]] = []
    for metric in storage.list_metrics():
        if metric.id in values:
            metrics.append({"name": metric.name, "value": values[metric.id], "unit": metric.unit})

    standings = compute_standings(storage, season_id, roster=[competitor])
    record = standings[0].record if standings else "0-0"
    return {"name": competitor.name, "record": record, "week": week, "metrics": metrics}


def build_prompt(summary: Dict[str, Any]) -> str:
    lines = [f"- {item['name']}: {item['value']:g}{item.get('unit') or ''}" for item in summary.get("metrics", [])]
    kpi_block = "\n".join(lines) if lines else "- No KPI data submitted yet"
    return (
        f"You are an AI performance coach. Analyze the following KPI data for {summary['name']} "
        f"(current record: {summary['record']}) and provide personalized, actionable advice.\n\n"
        f"KPIs:\n{kpi_block}\n\n"
        "Provide motivating, specific feedback in 2-3 concise paragraphs that highlights their strengths, "
        "identifies one key area for improvement and suggests 1-2 actionable steps. "
        "Keep the tone encouraging and professional."
    )


class CoachClient:
    """Thin client for an OpenAI-compatible chat-completions endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.coach_api_key
        self.base_url = (base_url or settings.coach_base_url).rstrip("/")
        self.model = model or settings.coach_model
        self._client = client

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=httpx.Timeout(30.0, connect=10.0))
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def request_feedback(self, summary: Dict[str, Any]) -> str:
        if not self.api_key:
            raise CoachUnavailableError("No API key configured for the coaching service.")
        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(summary)},
            ],
            "max_completion_tokens": 500,
        }
        try:
            response = self._http().post(f"{self.base_url}/chat/completions", json=payload, headers=headers)
            response.raise_for_status()
        except HTTPStatusError as err:
            logger.warning("Coaching request failed with status %s", err.response.status_code)
            raise CoachUnavailableError("Failed to generate coaching feedback") from err
        except httpx.HTTPError as err:
            logger.warning("Coaching request failed: %s", err)
            raise CoachUnavailableError("Failed to generate coaching feedback") from err

        choices = response.json().get("choices") or []
        if not choices:
            return FALLBACK_FEEDBACK
        content = (choices[0].get("message") or {}).get("content")
        return content or FALLBACK_FEEDBACK
