"""Shared test fixtures for the Assistant Relay test suite."""

from __future__ import annotations

import os
from typing import Any
from unittest.mock import MagicMock

import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("OPENAI_API_KEY", "test-openai-key-123")
    os.environ.setdefault("OPENAI_ASSISTANT_ID", "asst_test123")
    os.environ.setdefault("AIRTABLE_API_KEY", "test-airtable-key-456")
    os.environ["METRICS_ENABLED"] = "false"


class FakeAssistantClient:
    """In-memory stand-in for ``AssistantClient``.

    ``runs`` is the script of ``retrieve_run`` results, consumed in order;
    the last entry repeats forever.  An exception in the script is raised
    instead of returned.  ``errors`` maps a method name to an exception it
    raises on every call.
    """

    def __init__(
        self,
        runs: list[Any] | None = None,
        messages: list[dict[str, Any]] | None = None,
        errors: dict[str, Exception] | None = None,
    ):
        self.runs = list(runs or [{"status": "in_progress"}])
        self.messages = messages or []
        self.errors = errors or {}
        self.added: list[tuple[str, str]] = []
        self.submitted: list[list[dict[str, str]]] = []
        self.retrieve_calls = 0

    def _maybe_fail(self, name: str) -> None:
        if name in self.errors:
            raise self.errors[name]

    async def create_thread(self) -> str:
        self._maybe_fail("create_thread")
        return "c1"

    async def add_message(self, thread_id: str, content: str, role: str = "user") -> dict:
        self._maybe_fail("add_message")
        self.added.append((thread_id, content))
        return {"id": "msg_1"}

    async def create_run(self, thread_id: str) -> str:
        self._maybe_fail("create_run")
        return "r1"

    async def retrieve_run(self, thread_id: str, run_id: str) -> dict:
        self._maybe_fail("retrieve_run")
        self.retrieve_calls += 1
        item = self.runs.pop(0) if len(self.runs) > 1 else self.runs[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def list_messages(self, thread_id: str, *, run_id: str | None = None, limit: int = 20):
        self._maybe_fail("list_messages")
        return self.messages

    async def submit_tool_outputs(self, thread_id: str, run_id: str, tool_outputs):
        self._maybe_fail("submit_tool_outputs")
        self.submitted.append(tool_outputs)
        return {"id": run_id, "status": "queued"}


@pytest.fixture
def fake_assistant():
    """Factory fixture for scripted fake assistant clients."""
    return FakeAssistantClient


@pytest.fixture
def mock_http_response():
    """Factory fixture for creating mock httpx responses."""

    def _make(data: dict, status_code: int = 200):
        mock = MagicMock()
        mock.status_code = status_code
        mock.json.return_value = data
        mock.text = str(data)
        return mock

    return _make
