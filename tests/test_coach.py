"""
Tests for the coaching summary and the chat-completions client.
"""

import json

import httpx
import pytest

from kpileague.coach import FALLBACK_FEEDBACK, CoachClient, build_metric_summary, build_prompt
from kpileague.errors import CoachUnavailableError
from kpileague.models import Matchup


def _client(handler, api_key="test-key"):
    transport = httpx.MockTransport(handler)
    return CoachClient(
        api_key=api_key,
        base_url="https://coach.example/v1/",
        model="coach-model",
        client=httpx.Client(transport=transport),
    )


class TestMetricSummary:
    """What the coach is allowed to see."""

    def test_values_and_record(self, make_league):
        league = make_league(size=4)
        calls = league.metric("Calls")
        league.submit("c1", calls, 2, 42)
        league.storage.create_matchups(
            [Matchup(season_id="s1", week=1, competitor_a="c1", competitor_b="c4", score_a=3, score_b=1, winner_id="c1")]
        )
        league.set_current_week(2)

        summary = build_metric_summary(league.storage, "c1", "s1", 2)
        assert summary == {
            "name": "Rep 1",
            "record": "1-0",
            "week": 2,
            "metrics": [{"name": "Calls", "value": 42.0, "unit": None}],
        }

    def test_unknown_competitor(self, make_league):
        league = make_league(size=4)
        with pytest.raises(ValueError):
            build_metric_summary(league.storage, "ghost", "s1", 1)

    def test_prompt_without_metrics(self):
        prompt = build_prompt({"name": "Rep 1", "record": "0-0", "week": 1, "metrics": []})
        assert "No KPI data submitted yet" in prompt
        assert "Rep 1" in prompt


class TestCoachClient:
    """Calls to the text-generation service."""

    def test_posts_chat_completion(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "Keep dialing."}}]})

        client = _client(handler)
        summary = {"name": "Rep 1", "record": "2-1", "week": 3, "metrics": [{"name": "Calls", "value": 5, "unit": ""}]}

        assert client.request_feedback(summary) == "Keep dialing."
        assert seen["url"] == "https://coach.example/v1/chat/completions"
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"]["model"] == "coach-model"
        assert "Calls: 5" in seen["body"]["messages"][1]["content"]

    def test_empty_choices_fall_back(self):
        client = _client(lambda request: httpx.Response(200, json={"choices": []}))
        assert client.request_feedback({"name": "Rep 1", "record": "0-0", "metrics": []}) == FALLBACK_FEEDBACK

    def test_http_error_raises(self):
        client = _client(lambda request: httpx.Response(500, json={"error": "boom"}))
        with pytest.raises(CoachUnavailableError):
            client.request_feedback({"name": "Rep 1", "record": "0-0", "metrics": []})

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(CoachUnavailableError):
            _client(handler).request_feedback({"name": "Rep 1", "record": "0-0", "metrics": []})

    def test_missing_key(self):
        client = _client(lambda request: httpx.Response(200, json={}), api_key="")
        with pytest.raises(CoachUnavailableError):
            client.request_feedback({"name": "Rep 1", "record": "0-0", "metrics": []})
