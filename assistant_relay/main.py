"""CLI entry point for the Assistant Relay.

A terminal chat against the configured assistant that goes through the same
client, tools and driver as the HTTP server.  Handy for trying out an
assistant without the web widget.

Usage:
    python -m assistant_relay.main            # normal mode (quiet)
    python -m assistant_relay.main --debug    # debug mode (shows API calls)
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from dotenv import load_dotenv

from assistant_relay.config import (
    AIRTABLE_API_KEY,
    AIRTABLE_BASE_ID,
    AIRTABLE_BASE_URL,
    AIRTABLE_TABLE,
    ASSISTANT_ID,
    DOCUMENTS_DIR,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
)
from assistant_relay.driver import ConversationDriver, DriveStatus
from assistant_relay.services.assistant_client import AssistantAPIError, AssistantClient
from assistant_relay.services.composer import AnswerComposer
from assistant_relay.services.corpus import load_all
from assistant_relay.services.leads import LeadSink
from assistant_relay.tools.registry import build_default_registry

logger = logging.getLogger(__name__)

# How many consecutive timeouts to sit through before giving up on a run
MAX_TIMEOUTS = 5


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("assistant_relay").setLevel(logging.DEBUG if debug else logging.INFO)


async def ask(
    client: AssistantClient,
    driver: ConversationDriver,
    thread_id: str,
    message: str,
    *,
    max_timeouts: int = MAX_TIMEOUTS,
) -> str:
    """Send *message* and keep driving the run until there is an answer."""
    await client.add_message(thread_id, message)
    run_id = await client.create_run(thread_id)

    for _ in range(max_timeouts):
        outcome = await driver.drive_run(thread_id, run_id)
        if outcome.status is DriveStatus.COMPLETED:
            return outcome.text or ""
        if outcome.status is DriveStatus.ERROR:
            logger.error("Run %s failed: %s", run_id, outcome.detail)
            return "Sorry, something went wrong with that message. Please try again."
        print("  (still thinking…)")

    return "Sorry, the assistant is taking too long to answer. Please try again."


async def chat_loop() -> None:
    """Run the interactive CLI chat loop."""
    client = AssistantClient(OPENAI_API_KEY, OPENAI_BASE_URL, assistant_id=ASSISTANT_ID)
    leads = LeadSink(AIRTABLE_API_KEY, AIRTABLE_BASE_URL, AIRTABLE_BASE_ID, AIRTABLE_TABLE)
    corpus = load_all(DOCUMENTS_DIR)
    tools = build_default_registry(leads, AnswerComposer(), corpus)
    driver = ConversationDriver(client, tools)

    try:
        thread_id = await client.create_thread()
        logger.info("Started new conversation: %s", thread_id)

        while True:
            try:
                user_input = (await asyncio.to_thread(input, "You: ")).strip()
            except (KeyboardInterrupt, EOFError):
                print("\n\nGoodbye!")
                break

            if not user_input:
                continue

            if user_input.lower() in ("exit", "quit", "q"):
                print("\nGoodbye!")
                break

            if user_input.lower() == "new":
                thread_id = await client.create_thread()
                print(f"\n>> New conversation started: {thread_id}\n")
                continue

            try:
                reply = await ask(client, driver, thread_id, user_input)
            except AssistantAPIError as e:
                logger.exception("Error sending message")
                print(f"\nAssistant: I'm sorry, something went wrong: {e}")
                print("     Please try again or type 'new' to start a fresh conversation.\n")
                continue

            print(f"\nAssistant: {reply}\n")
    finally:
        await client.aclose()
        await leads.aclose()


def main():
    parser = argparse.ArgumentParser(description="Assistant Relay CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    print("\n" + "=" * 60)
    print("  Assistant Relay - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' for a new conversation.")
    print("=" * 60 + "\n")

    try:
        asyncio.run(chat_loop())
    except KeyboardInterrupt:
        print("\n\nGoodbye!")


if __name__ == "__main__":
    main()
