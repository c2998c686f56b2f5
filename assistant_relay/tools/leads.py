"""LangChain tool that lets the assistant record a sales lead in Airtable."""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.tools import BaseTool, tool

from assistant_relay.services.leads import LeadSink

logger = logging.getLogger(__name__)


def make_lead_tools(sink: LeadSink) -> list[BaseTool]:
    """Build the lead tools bound to *sink*."""

    @tool
    async def create_lead(
        name: str,
        phone: str,
        question: str = "",
        answer: str = "",
        notes: str = "",
    ) -> dict[str, Any]:
        """Save a prospective customer's contact details as a lead.

        Call this once the user has given their name and phone number.

        Args:
            name: The person's full name.
            phone: The person's phone number.
            question: The question the person asked, if any.
            answer: The answer they were given, if any.
            notes: Anything else worth passing to the sales team.
        """
        logger.info("create_lead called for %s", name)
        result = await sink.save(name, phone, question, answer, notes)
        return {"success": result.ok, "record_id": result.record_id, "error": result.error}

    return [create_lead]
