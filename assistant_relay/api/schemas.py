"""Pydantic schemas for the FastAPI endpoints.

The handle fields are optional so that a missing handle is answered with a
400 ``{error}`` body by the route rather than a 422.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class StartResponse(BaseModel):
    """A freshly allocated conversation."""

    conversation_id: str = Field(..., description="Assistant thread ID to send with every later request")


class ChatRequest(BaseModel):
    """A user message for an existing conversation."""

    conversation_id: str | None = Field(None, max_length=100)
    message: str = Field("", max_length=4000, description="The user's message")


class ChatResponse(BaseModel):
    run_id: str = Field(..., description="Run to poll via /check")


class CheckRequest(BaseModel):
    conversation_id: str | None = Field(None, max_length=100)
    run_id: str | None = Field(None, max_length=100)


class CheckResponse(BaseModel):
    """Either the final answer (``status="completed"``) or ``response="timeout"``."""

    response: str
    status: str | None = None


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "assistant-relay"
    documents: int = 0
    tools: list[str] = []
