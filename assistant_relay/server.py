"""FastAPI server for the Assistant Relay.

Run with:
    uvicorn assistant_relay.server:app --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from assistant_relay.api.routes import router
from assistant_relay.config import (
    AIRTABLE_API_KEY,
    AIRTABLE_BASE_ID,
    AIRTABLE_BASE_URL,
    AIRTABLE_TABLE,
    ASSISTANT_ID,
    CORS_ORIGINS,
    DOCUMENTS_DIR,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    SERVER_HOST,
    SERVER_PORT,
)
from assistant_relay.driver import ConversationDriver
from assistant_relay.services.assistant_client import AssistantClient
from assistant_relay.services.composer import AnswerComposer
from assistant_relay.services.corpus import load_all
from assistant_relay.services.leads import LeadSink
from assistant_relay.tools.registry import build_default_registry

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Build the clients, corpus, tool registry and driver once per process.

    Everything lives on ``app.state`` so tests can swap any piece for a
    fake before issuing requests.
    """
    if not ASSISTANT_ID:
        logger.warning("OPENAI_ASSISTANT_ID is not set; /chat will fail to start runs")

    assistant = AssistantClient(OPENAI_API_KEY, OPENAI_BASE_URL, assistant_id=ASSISTANT_ID)
    leads = LeadSink(AIRTABLE_API_KEY, AIRTABLE_BASE_URL, AIRTABLE_BASE_ID, AIRTABLE_TABLE)
    corpus = load_all(DOCUMENTS_DIR)
    logger.info("Loaded %d documents from %s", len(corpus), DOCUMENTS_DIR)

    tools = build_default_registry(leads, AnswerComposer(), corpus)

    application.state.assistant = assistant
    application.state.corpus = corpus
    application.state.tools = tools
    application.state.driver = ConversationDriver(assistant, tools)
    logger.info("Relay ready (tools: %s)", ", ".join(tools.names))
    yield
    await assistant.aclose()
    await leads.aclose()


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Assistant Relay",
    description=(
        "Bridges a chat widget to a hosted assistant - start conversations, "
        "send messages and poll runs, with document answers and lead capture."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error bodies ─────────────────────────────────────────────────────
@app.exception_handler(StarletteHTTPException)
async def http_error_body(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render every HTTP error as ``{"error": <message>}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def invalid_body_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies get a 400 ``{error}``; the validation detail stays in the log."""
    request_id = getattr(request.state, "request_id", "?")
    logger.warning("[%s] Invalid request body on %s: %s", request_id, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request body."})


@app.exception_handler(Exception)
async def unexpected_error_body(request: Request, exc: Exception) -> JSONResponse:
    """Log the traceback server-side; the client only gets a generic message."""
    request_id = getattr(request.state, "request_id", "?")
    logger.exception("[%s] Unhandled error on %s", request_id, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "An internal error occurred. Please try again."},
    )


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a request ID (``X-Request-ID``) to every request for log correlation."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Register routes ──────────────────────────────────────────────────
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Assistant Relay",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


# ── CLI entry point ──────────────────────────────────────────────────

def run() -> None:
    logger.info("Starting Assistant Relay on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run("assistant_relay.server:app", host=SERVER_HOST, port=SERVER_PORT)


if __name__ == "__main__":
    run()
