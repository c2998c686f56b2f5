"""Tests for the FastAPI endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from assistant_relay.driver import ConversationDriver
from assistant_relay.server import app
from assistant_relay.services.assistant_client import AssistantAPIError
from assistant_relay.tools.registry import ToolRegistry

_STATE = ("assistant", "driver", "tools", "corpus")


def _answer(value: str) -> dict:
    return {
        "role": "assistant",
        "content": [{"type": "text", "text": {"value": value, "annotations": []}}],
    }


def _wire(fake, *, deadline: float = 1.0) -> None:
    """Attach a fake client and a fast driver to app state (mirrors the lifespan)."""
    tools = ToolRegistry()
    app.state.assistant = fake
    app.state.tools = tools
    app.state.corpus = {"guide.pdf": "some text"}
    app.state.driver = ConversationDriver(
        fake, tools, deadline_seconds=deadline, poll_interval_seconds=0.01,
    )


@pytest.fixture
def fake(fake_assistant):
    return fake_assistant(
        runs=[{"status": "queued"}, {"status": "in_progress"}, {"status": "completed"}],
        messages=[_answer("  The answer is 42.  ")],
    )


@pytest.fixture
def client(fake):
    _wire(fake)
    yield TestClient(app)
    for name in _STATE:
        setattr(app.state, name, None)


class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "assistant-relay"
        assert data["documents"] == 1


class TestStartEndpoint:
    def test_returns_conversation_id(self, client):
        response = client.get("/api/start")
        assert response.status_code == 200
        assert response.json() == {"conversation_id": "c1"}

    def test_api_failure_returns_500_error_body(self, client, fake):
        fake.errors["create_thread"] = AssistantAPIError("secret upstream detail", status_code=502)
        response = client.get("/api/start")
        assert response.status_code == 500
        body = response.json()
        assert set(body) == {"error"}
        assert "secret upstream detail" not in body["error"]


class TestChatEndpoint:
    def test_returns_run_id(self, client, fake):
        response = client.post("/api/chat", json={"conversation_id": "c1", "message": "hello"})
        assert response.status_code == 200
        assert response.json() == {"run_id": "r1"}
        assert fake.added == [("c1", "hello")]

    def test_missing_conversation_id_is_400(self, client, fake):
        response = client.post("/api/chat", json={"message": "hello"})
        assert response.status_code == 400
        assert "conversation_id" in response.json()["error"]
        assert fake.added == []

    def test_api_failure_returns_500(self, client, fake):
        fake.errors["create_run"] = AssistantAPIError("boom", status_code=500)
        response = client.post("/api/chat", json={"conversation_id": "c1", "message": "hello"})
        assert response.status_code == 500
        assert "error" in response.json()


class TestCheckEndpoint:
    def test_end_to_end_send_then_check(self, client):
        sent = client.post("/api/chat", json={"conversation_id": "c1", "message": "hello"})
        run_id = sent.json()["run_id"]

        response = client.post("/api/check", json={"conversation_id": "c1", "run_id": run_id})

        assert response.status_code == 200
        assert response.json() == {"response": "The answer is 42.", "status": "completed"}

    @pytest.mark.parametrize(
        "body",
        [{"conversation_id": "c1"}, {"run_id": "r1"}, {}, {"conversation_id": "", "run_id": "r1"}],
    )
    def test_missing_ids_are_400(self, client, fake, body):
        response = client.post("/api/check", json=body)
        assert response.status_code == 400
        assert "error" in response.json()
        assert fake.retrieve_calls == 0

    def test_pending_run_returns_timeout(self, fake_assistant):
        _wire(fake_assistant(runs=[{"status": "in_progress"}]), deadline=0.05)
        try:
            response = TestClient(app).post("/api/check", json={"conversation_id": "c1", "run_id": "r1"})
        finally:
            for name in _STATE:
                setattr(app.state, name, None)
        assert response.status_code == 200
        assert response.json() == {"response": "timeout"}

    def test_failed_run_returns_500_without_detail(self, client, fake):
        fake.runs = [{"status": "failed", "last_error": {"message": "internal model error"}}]
        response = client.post("/api/check", json={"conversation_id": "c1", "run_id": "r1"})
        assert response.status_code == 500
        assert "internal model error" not in response.json()["error"]


class TestInvalidBody:
    def test_chat_without_body_is_400(self, client, fake):
        response = client.post("/api/chat")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body."}
        assert fake.added == []

    def test_non_string_conversation_id_is_400(self, client, fake):
        response = client.post("/api/check", json={"conversation_id": 123, "run_id": "r1"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body."}
        assert fake.retrieve_calls == 0

    def test_oversized_message_is_400(self, client, fake):
        response = client.post("/api/chat", json={"conversation_id": "c1", "message": "x" * 5000})
        assert response.status_code == 400
        assert set(response.json()) == {"error"}
        assert fake.added == []


class TestRequestId:
    def test_response_includes_request_id_header(self, client):
        response = client.get("/api/health")
        assert "X-Request-ID" in response.headers

    def test_client_supplied_request_id_is_echoed(self, client):
        response = client.get("/api/health", headers={"X-Request-ID": "my-trace-id-123"})
        assert response.headers["X-Request-ID"] == "my-trace-id-123"


class TestNotReady:
    def test_returns_503_before_lifespan_wiring(self):
        for name in _STATE:
            setattr(app.state, name, None)
        response = TestClient(app).get("/api/start")
        assert response.status_code == 503
        assert "starting up" in response.json()["error"].lower()


class TestRootEndpoint:
    def test_root_returns_service_info(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "Assistant Relay"
        assert "docs" in data
