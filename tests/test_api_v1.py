"""Tests for API v1 surface."""

import copy
import json
import os
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from conftest import StubCompletion, dimension_judge_handler, rubric_verdict
from core.config import DEFAULT_CONFIG
from dashboard.api import get_service
from dashboard.app import app
from dashboard.streaming import encode_event
from evals.service import OptimizerService
from evals.tracing import LangSmithSink

CRITERIA = json.dumps({
    "clarity": 4,
    "accuracy": 5,
    "helpfulness": 4,
    "completeness": 3,
    "reasoning": {"clarity": "clear"},
})


def _events(response):
    records = [chunk for chunk in response.text.split("\n\n") if chunk.strip()]
    assert all(record.startswith("data: ") for record in records)
    return [json.loads(record[len("data: "):]) for record in records]


def _service(completions=None):
    return OptimizerService(
        config=copy.deepcopy(DEFAULT_CONFIG),
        completions=completions,
        tracing=LangSmithSink({"api_key_env": "PROMPT_OPTIMIZER_TEST_UNSET_KEY"}),
    )


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def _use(service):
    app.dependency_overrides[get_service] = lambda: service
    return service


def test_encode_event():
    assert encode_event({"type": "log"}) == 'data: {"type": "log"}\n\n'


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/api/v1/health").json() == {"status": "ok"}


def test_optimize_streams_logs_then_complete(client):
    generator = StubCompletion(json.dumps([{"input": "2+2?"}, {"input": "3+3?"}]))
    executor = StubCompletion(handler=lambda p: "4")
    judge = StubCompletion(handler=lambda p: rubric_verdict(True, criteria=["must state a number"]))
    optimizer = StubCompletion()
    _use(_service({"generator": generator, "executor": executor, "judge": judge, "optimizer": optimizer}))

    response = client.post("/api/v1/optimize", json={
        "prompt": "Answer: {{input}}",
        "goal": "Answer arithmetic",
        "promptName": "math",
        "rubric": ["must state a number"],
    })

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _events(response)
    assert all(e["type"] == "log" for e in events[:-1])
    final = events[-1]
    assert final["type"] == "complete"
    evaluation = final["evaluation"]
    assert evaluation["optimizedPrompt"] == "Answer: {{input}}"
    assert evaluation["promptName"].startswith("math-v")
    assert evaluation["metrics"]["totalTests"] == 2
    assert len(evaluation["logs"]) == len(events) - 1
    assert optimizer.prompts == []


def test_optimize_missing_fields_is_an_error_event(client):
    generator = StubCompletion()
    _use(_service({"generator": generator}))

    response = client.post("/api/v1/optimize", json={"prompt": "Answer: {{input}}"})

    events = _events(response)
    assert events[-1]["type"] == "error"
    assert events[-1]["error"] == "Missing prompt, goal, or promptName"
    assert "complete" not in [e["type"] for e in events]
    assert generator.prompts == []


def test_optimize_missing_credentials_is_an_error_event(client):
    with patch.dict(os.environ, {}, clear=True):
        _use(_service())
        response = client.post("/api/v1/optimize", json={"prompt": "p", "goal": "g", "promptName": "n"})

    events = _events(response)
    assert events[-1]["type"] == "error"
    assert "GEMINI_API_KEY" in events[-1]["error"]


def test_evaluate_streams_candidates(client):
    cases = json.dumps([{"input": f"q{i}", "expected": "a"} for i in range(5)])
    _use(_service({
        "generator": StubCompletion(cases),
        "executor": StubCompletion(handler=lambda p: "a"),
        "judge": StubCompletion(handler=dimension_judge_handler("1")),
        "optimizer": StubCompletion(),
    }))

    events = _events(client.post("/api/v1/evaluate", json={"prompt": "Q: {{input}}"}))

    final = events[-1]
    assert final["type"] == "complete"
    assert final["evaluation"]["summary"]["total"] == 5
    assert final["evaluation"]["summary"]["passRate"] == 100.0
    assert final["evaluation"]["improvedPrompts"] == []


def test_evaluate_generation_failure_has_no_complete(client):
    _use(_service({
        "generator": StubCompletion("no array here"),
        "executor": StubCompletion(),
        "judge": StubCompletion(),
        "optimizer": StubCompletion(),
    }))

    events = _events(client.post("/api/v1/evaluate", json={"prompt": "Q: {{input}}"}))

    assert [e["type"] for e in events].count("complete") == 0
    assert events[-1]["error"] == "Failed to evaluate prompt"
    assert events[-1]["logs"]


def test_prompt_test_unknown_dataset_falls_back_to_general(client):
    _use(_service({
        "executor": StubCompletion(handler=lambda p: f"reply to {p}"),
        "judge": StubCompletion(handler=lambda p: '{"score": 0.9, "passed": true, "feedback": "good"}'),
    }))

    response = client.post("/api/v1/prompt-test", json={"prompt": "Explain: {{input}}", "dataset": "nope"})

    assert response.status_code == 200
    evaluation = response.json()["evaluation"]
    assert evaluation["dataset"] == "general"
    assert evaluation["summary"]["total_tests"] == 4
    assert evaluation["summary"]["passed_tests"] == 4
    assert evaluation["results"][0]["output"] == "reply to Explain: Explain quantum computing"
    assert evaluation["langsmith_enabled"] is False


def test_prompt_test_requires_prompt(client):
    _use(_service())
    response = client.post("/api/v1/prompt-test", json={})
    assert response.status_code == 400
    assert response.json()["detail"] == "Prompt string is required"


def test_llm_judge_scores_response(client):
    _use(_service({
        "executor": StubCompletion("The sky is blue because of Rayleigh scattering."),
        "judge": StubCompletion(CRITERIA),
    }))

    response = client.post("/api/v1/llm-judge", json={"prompt": "Why is the sky blue?"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["ai_response"].startswith("The sky is blue")
    assert data["evaluation"]["overall_score"] == 4.0


def test_llm_judge_unparseable_verdict_returns_500(client):
    _use(_service({"executor": StubCompletion("answer"), "judge": StubCompletion("great answer!")}))
    response = client.post("/api/v1/llm-judge", json={"prompt": "hi"})
    assert response.status_code == 500


def test_prompts_without_tracing_key_returns_400(client):
    _use(_service())
    response = client.get("/api/v1/prompts")
    assert response.status_code == 400
    assert "PROMPT_OPTIMIZER_TEST_UNSET_KEY" in response.json()["detail"]


def test_providers_endpoint_shape(client):
    _use(_service())
    data = client.get("/api/v1/providers").json()
    assert [p["name"] for p in data["providers"]] == ["claude", "gemini", "groq"]
    assert data["roles"]["judge"] == {"provider": "claude", "fallback": "groq"}
