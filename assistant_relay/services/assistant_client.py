"""Async HTTP client for the OpenAI Assistants API v2 (threads, messages, runs).

API docs: https://platform.openai.com/docs/api-reference/assistants
All requests carry the API key as a Bearer token and the
``OpenAI-Beta: assistants=v2`` header.

Calls are never retried: a failed call surfaces as ``AssistantAPIError``
and the caller decides what to do with it.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any

import httpx

from assistant_relay.services.metrics import metrics

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 15.0

_ID_SEGMENT_RE = re.compile(r"/(thread|run|msg|call|asst)_[A-Za-z0-9]+")
_ID_PLACEHOLDER = r"/{\1}"


class AssistantAPIError(Exception):
    """Raised when an Assistants API call fails (transport error or non-2xx)."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


def _operation_name(method: str, path: str) -> str:
    """Collapse IDs out of *path* so metrics group by endpoint."""
    return f"{method} {_ID_SEGMENT_RE.sub(_ID_PLACEHOLDER, path)}"


def _resource_id(data: Any, operation: str) -> str:
    """Return the ``id`` of a created resource, or raise ``AssistantAPIError``."""
    resource_id = data.get("id") if isinstance(data, dict) else None
    if not isinstance(resource_id, str) or not resource_id:
        raise AssistantAPIError(f"{operation} returned no id")
    return resource_id


class AssistantClient:
    """Thin async wrapper around the thread / message / run endpoints.

    One instance is created per process (see the FastAPI lifespan) and
    shared by every request; ``httpx.AsyncClient`` pools connections and is
    safe to use from concurrent tasks.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        *,
        assistant_id: str = "",
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self._assistant_id = assistant_id
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "OpenAI-Beta": "assistants=v2",
            },
            timeout=timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Internal helpers ─────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Execute one HTTP request; any failure becomes ``AssistantAPIError``."""
        operation = _operation_name(method, path)
        t0 = time.perf_counter()
        try:
            response = await self._client.request(method, path, params=params, json=json_body)
        except httpx.HTTPError as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure("assistant", operation, type(exc).__name__, elapsed)
            raise AssistantAPIError(f"{operation} failed: {type(exc).__name__}: {exc}") from exc

        elapsed = (time.perf_counter() - t0) * 1000
        if response.status_code >= 400:
            metrics.record_failure("assistant", operation, str(response.status_code), elapsed)
            raise AssistantAPIError(
                f"{operation} returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        metrics.record_success("assistant", operation, elapsed)
        try:
            return response.json()
        except ValueError as exc:
            raise AssistantAPIError(f"{operation} returned a non-JSON body") from exc

    # ── Public API methods ───────────────────────────────────────────

    async def create_thread(self) -> str:
        """Create an empty conversation thread and return its ID."""
        data = await self._request("POST", "/threads", json_body={})
        return _resource_id(data, "POST /threads")

    async def add_message(self, thread_id: str, content: str, role: str = "user") -> dict[str, Any]:
        """Append a message to *thread_id*."""
        return await self._request(
            "POST",
            f"/threads/{thread_id}/messages",
            json_body={"role": role, "content": content},
        )

    async def create_run(self, thread_id: str) -> str:
        """Start a run of the configured assistant on *thread_id*.

        Returns:
            The new run ID.
        """
        if not self._assistant_id:
            raise AssistantAPIError("No assistant configured (set OPENAI_ASSISTANT_ID).")
        data = await self._request(
            "POST",
            f"/threads/{thread_id}/runs",
            json_body={"assistant_id": self._assistant_id},
        )
        return _resource_id(data, _operation_name("POST", f"/threads/{thread_id}/runs"))

    async def retrieve_run(self, thread_id: str, run_id: str) -> dict[str, Any]:
        """Fetch the current state of a run (status, required_action, ...)."""
        return await self._request("GET", f"/threads/{thread_id}/runs/{run_id}")

    async def list_messages(
        self,
        thread_id: str,
        *,
        run_id: str | None = None,
        limit: int = 20,
    ) -> list[dict[str, Any]]:
        """List messages on a thread, newest first.

        Args:
            thread_id: The thread to read.
            run_id: Only return messages produced by this run.
            limit: Page size (the API caps it at 100).
        """
        params: dict[str, Any] = {"order": "desc", "limit": limit}
        if run_id:
            params["run_id"] = run_id
        data = await self._request("GET", f"/threads/{thread_id}/messages", params=params)
        return data.get("data", [])

    async def submit_tool_outputs(
        self,
        thread_id: str,
        run_id: str,
        tool_outputs: list[dict[str, str]],
    ) -> dict[str, Any]:
        """Submit the outputs for every pending tool call of a run in one call.

        Args:
            tool_outputs: ``[{"tool_call_id": ..., "output": <json string>}, ...]``
        """
        return await self._request(
            "POST",
            f"/threads/{thread_id}/runs/{run_id}/submit_tool_outputs",
            json_body={"tool_outputs": tool_outputs},
        )
