"""Run-polling / tool-call relay loop for Assistants API runs.

Architecture:
  A run is a unit of assistant work started by ``/chat``.  The driver takes
  the (thread, run) pair and polls it as a small state machine:

    pending          → sleep ``poll_interval`` and poll again
    requires_action  → run every requested tool, submit all outputs in one
                       call, sleep, poll again
    completed        → fetch the run's assistant message, strip citation
                       annotations, return the text
    failed/expired/  → return an error outcome (a terminal run is never
    cancelled/...      polled again)

  The loop stops at the first of: completed, terminal failure, any
  ``AssistantAPIError`` (no retry), or the deadline.  Each cycle ends with
  one ``asyncio.sleep`` so it never spins faster than ``poll_interval`` and
  other requests keep being served while a run is pending.

Tool-call relay:
  Outputs are tagged with the ``tool_call_id`` of the call that produced
  them, and every token is submitted at most once per drive.  Unknown tool
  names, unparseable arguments and handler exceptions all become an
  ``{"error": ...}`` output for that call so the run can move on.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from collections.abc import Iterable
from enum import Enum
from typing import Any

from pydantic import BaseModel

from assistant_relay.config import POLL_INTERVAL_SECONDS, RUN_DEADLINE_SECONDS
from assistant_relay.services.assistant_client import AssistantAPIError, AssistantClient
from assistant_relay.services.metrics import metrics
from assistant_relay.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

RUN_COMPLETED = "completed"
RUN_REQUIRES_ACTION = "requires_action"
RUN_TERMINAL_FAILURES = frozenset({"failed", "cancelled", "expired", "incomplete"})

# File-search citations look like 【4:0†manual.pdf】
_CITATION_RE = re.compile(r"【[^】]*】")


# ── Outcome and wire types ───────────────────────────────────────────


class DriveStatus(str, Enum):
    COMPLETED = "completed"
    TIMEOUT = "timeout"
    ERROR = "error"


class DriveOutcome(BaseModel):
    """The single result of one ``drive_run`` call."""

    status: DriveStatus
    text: str | None = None
    detail: str | None = None
    polls: int = 0

    @classmethod
    def completed(cls, text: str, polls: int) -> DriveOutcome:
        return cls(status=DriveStatus.COMPLETED, text=text, polls=polls)

    @classmethod
    def timeout(cls, polls: int) -> DriveOutcome:
        return cls(status=DriveStatus.TIMEOUT, polls=polls)

    @classmethod
    def error(cls, detail: str, polls: int) -> DriveOutcome:
        return cls(status=DriveStatus.ERROR, detail=detail, polls=polls)


class ToolCallRequest(BaseModel):
    """A function call the assistant wants executed locally."""

    id: str
    name: str
    arguments: str = "{}"


class ToolOutput(BaseModel):
    """JSON-encoded tool result, tagged with the call it answers."""

    tool_call_id: str
    output: str


# ── Message helpers ──────────────────────────────────────────────────


def strip_annotations(text: str, spans: Iterable[str] = ()) -> str:
    """Remove annotation spans and citation markers from *text*.

    Removal repeats until nothing changes, so applying this twice gives the
    same result as applying it once.
    """
    markers = [span for span in spans if span]
    previous = None
    while previous != text:
        previous = text
        for marker in markers:
            text = text.replace(marker, "")
        text = _CITATION_RE.sub("", text)
    return text.strip()


def message_text(message: dict[str, Any]) -> str:
    """Join the text parts of an API message, annotations removed."""
    parts: list[str] = []
    for part in message.get("content") or []:
        if part.get("type") != "text":
            continue
        body = part.get("text") or {}
        spans = [a.get("text", "") for a in body.get("annotations") or []]
        cleaned = strip_annotations(body.get("value", ""), spans)
        if cleaned:
            parts.append(cleaned)
    return "\n".join(parts)


def pending_tool_calls(run: dict[str, Any]) -> list[ToolCallRequest]:
    """Extract the function calls listed under ``required_action``."""
    action = run.get("required_action") or {}
    raw_calls = (action.get("submit_tool_outputs") or {}).get("tool_calls") or []
    calls: list[ToolCallRequest] = []
    for raw in raw_calls:
        function = raw.get("function") or {}
        if not raw.get("id") or not function.get("name"):
            logger.warning("Ignoring malformed tool call: %r", raw)
            continue
        calls.append(
            ToolCallRequest(
                id=raw["id"],
                name=function["name"],
                arguments=function.get("arguments") or "{}",
            )
        )
    return calls


# ── Driver ───────────────────────────────────────────────────────────


class ConversationDriver:
    """Drives one Assistants API run to an answer, a timeout, or an error."""

    def __init__(
        self,
        client: AssistantClient,
        tools: ToolRegistry,
        *,
        deadline_seconds: float = RUN_DEADLINE_SECONDS,
        poll_interval_seconds: float = POLL_INTERVAL_SECONDS,
    ):
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        self._client = client
        self._tools = tools
        self._deadline_seconds = deadline_seconds
        self._poll_interval = poll_interval_seconds

    async def drive_run(self, thread_id: str, run_id: str) -> DriveOutcome:
        """Poll *run_id* until it completes, fails, or the deadline passes."""
        outcome = await self._drive(thread_id, run_id)
        metrics.record_drive_outcome(outcome.status.value, outcome.polls)
        return outcome

    async def _drive(self, thread_id: str, run_id: str) -> DriveOutcome:
        deadline = time.monotonic() + self._deadline_seconds
        submitted: set[str] = set()
        polls = 0

        try:
            while time.monotonic() < deadline:
                run = await self._client.retrieve_run(thread_id, run_id)
                polls += 1
                status = run.get("status")
                logger.debug("Run %s status: %s", run_id, status)

                if status == RUN_COMPLETED:
                    return await self._completed(thread_id, run_id, polls)

                if status in RUN_TERMINAL_FAILURES:
                    last_error = run.get("last_error") or {}
                    logger.warning(
                        "Run %s ended with status %s: %s",
                        run_id, status, last_error.get("message", "no detail"),
                    )
                    return DriveOutcome.error(f"Run ended with status {status}", polls)

                if status == RUN_REQUIRES_ACTION:
                    await self._relay_tool_calls(thread_id, run_id, run, submitted)

                await asyncio.sleep(self._poll_interval)

        except AssistantAPIError as exc:
            logger.error("Run %s aborted after %d polls: %s", run_id, polls, exc)
            return DriveOutcome.error(str(exc), polls)

        logger.info(
            "Run %s still pending after %.1fs (%d polls)", run_id, self._deadline_seconds, polls,
        )
        return DriveOutcome.timeout(polls)

    async def _completed(self, thread_id: str, run_id: str, polls: int) -> DriveOutcome:
        messages = await self._client.list_messages(thread_id, run_id=run_id)
        reply = next((m for m in messages if m.get("role") == "assistant"), None)
        if reply is None:
            logger.error("Run %s completed without an assistant message", run_id)
            return DriveOutcome.error("Run completed without an assistant message", polls)

        logger.info("Run %s completed after %d polls", run_id, polls)
        return DriveOutcome.completed(message_text(reply), polls)

    # ── Tool-call relay ──────────────────────────────────────────────

    async def _relay_tool_calls(
        self,
        thread_id: str,
        run_id: str,
        run: dict[str, Any],
        submitted: set[str],
    ) -> None:
        calls = [call for call in pending_tool_calls(run) if call.id not in submitted]
        if not calls:
            return

        logger.info(
            "Run %s requires action: %s", run_id, ", ".join(call.name for call in calls),
        )
        outputs = await asyncio.gather(*(self._execute(call) for call in calls))
        submitted.update(call.id for call in calls)
        await self._client.submit_tool_outputs(
            thread_id, run_id, [output.model_dump() for output in outputs],
        )

    async def _execute(self, call: ToolCallRequest) -> ToolOutput:
        """Run one tool call; failures become an ``{"error": ...}`` output."""
        result: Any
        tool = self._tools.get(call.name)
        if tool is None:
            logger.warning("Assistant requested unknown tool %r", call.name)
            result = {"error": f"Unknown tool: {call.name}"}
        else:
            try:
                args = json.loads(call.arguments)
            except json.JSONDecodeError:
                args = None
            if not isinstance(args, dict):
                logger.warning("Invalid arguments for tool %s: %r", call.name, call.arguments)
                result = {"error": f"Invalid arguments for tool {call.name}"}
            else:
                try:
                    result = await tool.ainvoke(args)
                except Exception as exc:
                    logger.exception("Tool %s failed", call.name)
                    result = {"error": f"{type(exc).__name__}: {exc}"}

        return ToolOutput(tool_call_id=call.id, output=json.dumps(result, default=str))
