"""FastAPI route definitions for the assistant relay API."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from assistant_relay.api.schemas import (
    ChatRequest,
    ChatResponse,
    CheckRequest,
    CheckResponse,
    ErrorResponse,
    HealthResponse,
    StartResponse,
)
from assistant_relay.driver import DriveStatus
from assistant_relay.services.assistant_client import AssistantAPIError

logger = logging.getLogger(__name__)

router = APIRouter()

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def _get_resource(request: Request, name: str):
    """Retrieve a shared resource created by the lifespan from app state."""
    resource = getattr(request.app.state, name, None)
    if resource is None:
        raise HTTPException(
            status_code=503,
            detail="The service is still starting up. Please try again in a moment.",
        )
    return resource


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "?")


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check(http_request: Request):
    """Health check endpoint."""
    state = http_request.app.state
    tools = getattr(state, "tools", None)
    return HealthResponse(
        documents=len(getattr(state, "corpus", None) or {}),
        tools=tools.names if tools is not None else [],
    )


@router.get("/start", response_model=StartResponse, responses=_ERROR_RESPONSES)
async def start_conversation(http_request: Request):
    """Allocate a new conversation (assistant thread)."""
    client = _get_resource(http_request, "assistant")
    try:
        thread_id = await client.create_thread()
    except AssistantAPIError as exc:
        logger.exception("[%s] Failed to start a conversation", _request_id(http_request))
        raise HTTPException(status_code=500, detail="Error starting the conversation.") from exc

    logger.info("[%s] New conversation %s", _request_id(http_request), thread_id)
    return StartResponse(conversation_id=thread_id)


@router.post("/chat", response_model=ChatResponse, responses=_ERROR_RESPONSES)
async def send_message(request: ChatRequest, http_request: Request):
    """Add the user's message to the conversation and start a run.

    The answer is not returned here; the client polls ``/check`` with the
    returned ``run_id``.
    """
    request_id = _request_id(http_request)
    if not request.conversation_id:
        logger.warning("[%s] /chat called without conversation_id", request_id)
        raise HTTPException(status_code=400, detail="Missing conversation_id.")

    client = _get_resource(http_request, "assistant")
    try:
        await client.add_message(request.conversation_id, request.message)
        run_id = await client.create_run(request.conversation_id)
    except AssistantAPIError as exc:
        logger.exception("[%s] Failed to send message", request_id)
        raise HTTPException(status_code=500, detail="Error processing the message.") from exc

    logger.info("[%s] Started run %s on %s", request_id, run_id, request.conversation_id)
    return ChatResponse(run_id=run_id)


@router.post(
    "/check",
    response_model=CheckResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
)
async def check_run(request: CheckRequest, http_request: Request):
    """Wait (up to the run deadline) for the run to finish.

    Returns the cleaned answer once the run completes, or
    ``{"response": "timeout"}`` so the client can call again with the same
    IDs.
    """
    request_id = _request_id(http_request)
    if not request.conversation_id or not request.run_id:
        logger.warning("[%s] /check called without conversation_id or run_id", request_id)
        raise HTTPException(status_code=400, detail="Missing conversation_id or run_id.")

    driver = _get_resource(http_request, "driver")
    outcome = await driver.drive_run(request.conversation_id, request.run_id)

    if outcome.status is DriveStatus.COMPLETED:
        return CheckResponse(response=outcome.text or "", status="completed")
    if outcome.status is DriveStatus.TIMEOUT:
        logger.info("[%s] Run %s timed out", request_id, request.run_id)
        return CheckResponse(response="timeout")

    logger.error("[%s] Run %s failed: %s", request_id, request.run_id, outcome.detail)
    raise HTTPException(status_code=500, detail="Error checking the run status.")
