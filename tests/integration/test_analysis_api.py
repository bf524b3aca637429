"""Integration tests for the analysis API against a mocked chat-completion backend."""

import json
from collections.abc import Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from report_insights.application.services import (
    AnalysisEngine,
    FingerprintCache,
    PerformanceMonitor,
    RequestDispatcher,
)
from report_insights.config import ModelSettings, Settings
from report_insights.domain.entities import RequestOptions
from report_insights.infrastructure.chat_api import ChatCompletionClient
from report_insights.infrastructure.dependencies import (
    get_analysis_engine,
    get_model_provider,
    get_queue_results,
    get_request_dispatcher,
)
from report_insights.infrastructure.model_config import SettingsModelConfigProvider
from report_insights.main import app

ANALYSIS = {
    "summary": "Revenue grew 12%.",
    "trends": ["online up"],
    "insights": ["north leads"],
    "recommendations": ["expand north"],
}


# ── Mock backend ──


class MockBackend:
    """OpenAI-compatible backend; answers per model from a scripted list."""

    def __init__(self, answers: dict[str, list]):
        self._answers = {k: list(v) for k, v in answers.items()}
        self.requests: list[dict] = []
        self.on_request: Callable[[dict], None] | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        if self.on_request is not None:
            self.on_request(body)
        answer = self._answers[body["model"]].pop(0)
        if isinstance(answer, int):
            return httpx.Response(answer, text="backend error")
        if body.get("stream"):
            lines = [
                "data: " + json.dumps({"choices": [{"delta": {"content": answer[i : i + 10]}}]})
                for i in range(0, len(answer), 10)
            ]
            content = "\n\n".join(lines + ["data: [DONE]"]) + "\n\n"
            return httpx.Response(
                200, content=content.encode(), headers={"content-type": "text/event-stream"}
            )
        return httpx.Response(
            200,
            json={
                "model": body["model"],
                "choices": [{"message": {"role": "assistant", "content": answer}}],
                "usage": {"prompt_tokens": 30, "completion_tokens": 20, "total_tokens": 50},
            },
        )


def _settings() -> Settings:
    return Settings(
        analysis_api_url="http://backend.test/v1/chat/completions",
        analysis_model="primary",
        available_models=[
            ModelSettings(id="primary", name="Primary", is_primary=True),
            ModelSettings(id="fallback", name="Fallback", max_tokens=1000),
        ],
    )


@pytest.fixture
def wire():
    """Install engine, provider and dispatcher overrides for a scripted backend."""

    def install(answers: dict[str, list]) -> tuple[MockBackend, AnalysisEngine]:
        backend = MockBackend(answers)
        provider = SettingsModelConfigProvider(_settings())

        async def no_sleep(seconds: float) -> None:
            return None

        engine = AnalysisEngine(
            transport=ChatCompletionClient(
                http_client=httpx.AsyncClient(transport=httpx.MockTransport(backend.handler))
            ),
            model_provider=provider,
            cache=FingerprintCache(),
            monitor=PerformanceMonitor(),
            default_options=RequestOptions(max_retries=1, retry_delay_ms=1),
            sleep=no_sleep,
        )
        dispatcher = RequestDispatcher(engine.analyze, max_concurrent=1)
        results: dict[str, dict] = {}

        app.dependency_overrides[get_analysis_engine] = lambda: engine
        app.dependency_overrides[get_model_provider] = lambda: provider
        app.dependency_overrides[get_request_dispatcher] = lambda: dispatcher
        app.dependency_overrides[get_queue_results] = lambda: results
        return backend, engine

    yield install
    app.dependency_overrides.clear()


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


# ── Tests ──


@pytest.mark.asyncio
async def test_analysis_returns_parsed_result_and_uses_cache(wire):
    backend, _ = wire({"primary": [json.dumps(ANALYSIS)]})

    async with _client() as client:
        first = await client.post("/api/v1/analysis", json={"prompt": "Q2 report", "data_version": 7})
        second = await client.post("/api/v1/analysis", json={"prompt": "Q2 report", "data_version": 7})

    assert first.status_code == 200
    data = first.json()
    assert data["result"] == ANALYSIS
    assert data["missing_fields"] == []
    assert len(data["fingerprint"]) == 64
    assert second.json()["result"] == ANALYSIS
    assert len(backend.requests) == 1


@pytest.mark.asyncio
async def test_analysis_falls_back_to_next_model(wire):
    backend, _ = wire({
        "primary": [503, 503, '{"summary": "primary"}'],
        "fallback": ['{"summary": "fallback"}'],
    })

    async with _client() as client:
        response = await client.post("/api/v1/analysis", json={"prompt": "report"})
        status = await client.get("/api/v1/analysis/status")
        following = await client.post("/api/v1/analysis", json={"prompt": "next report"})

    assert response.status_code == 200
    assert response.json()["result"] == {"summary": "fallback"}
    assert status.json()["current_model"] == "primary"
    assert status.json()["model_switch_count"] == 1
    assert following.json()["result"] == {"summary": "primary"}
    assert [r["model"] for r in backend.requests] == ["primary", "primary", "fallback", "primary"]


@pytest.mark.asyncio
async def test_returned_fingerprint_evicts_the_cached_result(wire):
    backend, engine = wire({"primary": [json.dumps(ANALYSIS)]})
    provider = app.dependency_overrides[get_model_provider]()
    backend.on_request = lambda body: provider.switch_active_model("fallback")

    async with _client() as client:
        response = await client.post("/api/v1/analysis", json={"prompt": "report"})
        fingerprint = response.json()["fingerprint"]
        assert fingerprint in engine.cache

        cleared = await client.delete("/api/v1/cache", params={"fingerprint": fingerprint})

    assert cleared.json()["remaining"] == 0
    assert len(engine.cache) == 0


@pytest.mark.asyncio
async def test_analysis_failure_returns_502_with_error_kind(wire):
    wire({"primary": [401]})

    async with _client() as client:
        response = await client.post("/api/v1/analysis", json={"prompt": "report"})

    assert response.status_code == 502
    assert response.json()["detail"]["error_kind"] == "auth"


@pytest.mark.asyncio
async def test_analysis_rejects_invalid_options(wire):
    wire({})

    async with _client() as client:
        response = await client.post(
            "/api/v1/analysis", json={"prompt": "report", "options": {"timeout_ms": 0}}
        )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_stream_endpoint_emits_deltas_result_and_done(wire):
    content = json.dumps(ANALYSIS)
    wire({"primary": [content]})

    async with _client() as client:
        response = await client.post("/api/v1/analysis/stream", json={"prompt": "report"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = [line[len("data: "):] for line in response.text.split("\n\n") if line]
    assert events[-1] == "[DONE]"
    payloads = [json.loads(e) for e in events[:-1]]
    deltas = "".join(p["delta"] for p in payloads if "delta" in p)
    assert deltas == content
    assert payloads[-1] == {"result": ANALYSIS}


@pytest.mark.asyncio
async def test_stream_endpoint_reports_error_event(wire):
    wire({"primary": [400]})

    async with _client() as client:
        response = await client.post("/api/v1/analysis/stream", json={"prompt": "report"})

    events = [line[len("data: "):] for line in response.text.split("\n\n") if line]
    assert json.loads(events[0])["error"]["error_kind"] == "client_error"
    assert events[-1] == "[DONE]"


@pytest.mark.asyncio
async def test_batch_endpoint(wire):
    wire({"primary": ['{"n": 1}', 400]})

    async with _client() as client:
        response = await client.post(
            "/api/v1/analysis/batch",
            json={"items": ["first", {"prompt": "second"}], "options": {"max_concurrent_requests": 1}},
        )

    assert response.status_code == 200
    data = response.json()
    assert data["results"] == [{"n": 1}, None]
    assert data["succeeded"] == 1
    assert data["failed"] == 1


@pytest.mark.asyncio
async def test_queue_lifecycle(wire):
    _, engine = wire({"primary": ['{"n": 1}']})

    async with _client() as client:
        queued = await client.post("/api/v1/analysis/queue", json={"prompt": "report"})
        assert queued.status_code == 202
        request_id = queued.json()["request_id"]

        dispatcher = app.dependency_overrides[get_request_dispatcher]()
        await dispatcher.join()

        result = await client.get(f"/api/v1/analysis/queue/{request_id}")
        missing = await client.delete("/api/v1/analysis/queue/unknown")
        cleared = await client.delete("/api/v1/analysis/queue")

    assert result.json()["status"] == "success"
    assert result.json()["result"] == {"n": 1}
    assert missing.status_code == 404
    assert cleared.json() == {"cancelled": 0}


@pytest.mark.asyncio
async def test_performance_and_cache_endpoints(wire):
    wire({"primary": ['{"n": 1}', '{"n": 2}']})

    async with _client() as client:
        await client.post("/api/v1/analysis", json={"prompt": "report"})
        perf = await client.get("/api/v1/performance")
        cleared = await client.delete("/api/v1/cache")
        again = await client.post("/api/v1/analysis", json={"prompt": "report"})
        reset = await client.post("/api/v1/performance/reset")
        after_reset = await client.get("/api/v1/performance")

    snapshot = perf.json()
    assert snapshot["overall"]["total_requests"] == 1
    assert snapshot["token_usage"]["total_tokens"] == 50
    assert snapshot["recent_requests"][0]["status"] == "success"
    assert cleared.json() == {"cleared": "all", "remaining": 0}
    assert again.json()["result"] == {"n": 2}
    assert reset.status_code == 204
    assert after_reset.json()["overall"]["total_requests"] == 0


@pytest.mark.asyncio
async def test_models_endpoints(wire):
    wire({})

    async with _client() as client:
        listed = await client.get("/api/v1/models")
        switched = await client.put("/api/v1/models/active", json={"model_id": "fallback"})
        unknown = await client.put("/api/v1/models/active", json={"model_id": "nope"})
        reset = await client.delete("/api/v1/models/active")

    models = listed.json()
    assert [m["id"] for m in models] == ["primary", "fallback"]
    assert models[0]["is_active"] is True
    assert switched.json()["id"] == "fallback"
    assert switched.json()["is_active"] is True
    assert unknown.status_code == 404
    assert reset.json()["id"] == "primary"


@pytest.mark.asyncio
async def test_update_active_model_config_changes_request_body(wire):
    backend, _ = wire({"primary": ['{"ok": true}']})

    async with _client() as client:
        patched = await client.patch("/api/v1/models/active", json={"temperature": 0.9})
        await client.post("/api/v1/analysis", json={"prompt": "report"})

    assert patched.status_code == 200
    assert patched.json()["temperature"] == 0.9
    assert backend.requests[0]["temperature"] == 0.9
