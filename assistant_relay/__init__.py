"""Assistant Relay: a thin backend between a chat widget and a hosted assistant.

Architecture Overview
=====================

The web client never talks to the assistant API directly.  Instead it calls
three endpoints on this service:

1. **start** - allocates a new conversation (an Assistants API *thread*) and
   returns its ID to the caller.

2. **chat** - appends the user's message to the thread and starts a *run*.

3. **check** - hands the thread/run pair to the ``ConversationDriver``, which
   polls the run until it completes, needs tool output, or the deadline passes.

Routing: start → chat → check (→ check again on timeout) → answer

Key Design Decisions
--------------------
- **Stateless**: the conversation and run IDs are round-tripped by the client
  on every request; nothing is stored here between calls.
- **Cooperative polling**: the driver sleeps with ``asyncio.sleep`` so one slow
  run never blocks other requests on the event loop.
- **Tool relay**: when the assistant asks for a tool (e.g. ``create_lead``),
  the driver looks the name up in a ``ToolRegistry`` of LangChain tools and
  submits every output of the batch in one call.
- **Grounding**: PDFs in ``DOCUMENTS_DIR`` are loaded once at start-up and
  exposed to the assistant through the ``answer_from_documents`` tool.
- **Leads**: contact details are written to Airtable, best-effort and
  at-most-once.

Package Structure
-----------------
- ``assistant_relay/driver.py`` - run-polling / tool-call relay loop
- ``assistant_relay/config.py`` - Centralized configuration from environment variables
- ``assistant_relay/prompts.py`` - Prompts for the document-grounded completions
- ``assistant_relay/server.py`` - FastAPI application
- ``assistant_relay/main.py`` - CLI chat interface
- ``assistant_relay/services/`` - External API clients (assistant, Airtable, completions, PDFs)
- ``assistant_relay/tools/`` - LangChain tools and the registry the driver dispatches through
- ``assistant_relay/api/`` - FastAPI routes and Pydantic schemas
"""
