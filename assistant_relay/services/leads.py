"""Airtable lead storage.

Airtable API docs: https://airtable.com/developers/web/api/create-records
Delivery is best-effort and at-most-once: one POST per lead, no retry and
no local buffering.  ``save`` never raises.
"""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from assistant_relay.services.metrics import metrics

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10.0

# Column names in the "Accelerator Leads" table
LEAD_FIELDS = {
    "name": "Nombre",
    "phone": "Número",
    "question": "Pregunta",
    "answer": "Respuesta",
    "notes": "Notas",
}


class LeadSaveResult(BaseModel):
    """Outcome of a single lead write: a record ID or an error message."""

    record_id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.record_id is not None


class LeadSink:
    """Creates one Airtable record per lead."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        base_id: str,
        table: str,
        *,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self._api_key = api_key
        self._path = f"/{base_id}/{quote(table)}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def build_payload(
        name: str,
        phone: str,
        question: str = "",
        answer: str = "",
        notes: str = "",
    ) -> dict[str, Any]:
        values = {"name": name, "phone": phone, "question": question, "answer": answer, "notes": notes}
        fields = {LEAD_FIELDS[key]: value for key, value in values.items()}
        return {"records": [{"fields": fields}]}

    async def save(
        self,
        name: str,
        phone: str,
        question: str = "",
        answer: str = "",
        notes: str = "",
    ) -> LeadSaveResult:
        """Create a lead record and return its Airtable ID, or the failure."""
        if not self._api_key:
            logger.error("Cannot save lead: AIRTABLE_API_KEY is not configured")
            return LeadSaveResult(error="Lead storage is not configured.")

        payload = self.build_payload(name, phone, question, answer, notes)
        t0 = time.perf_counter()
        try:
            response = await self._client.post(self._path, json=payload)
        except httpx.HTTPError as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure("airtable", "POST /records", type(exc).__name__, elapsed)
            logger.error("Failed to save lead to Airtable: %s", exc)
            return LeadSaveResult(error=f"{type(exc).__name__}: {exc}")

        elapsed = (time.perf_counter() - t0) * 1000
        if response.status_code >= 400:
            metrics.record_failure("airtable", "POST /records", str(response.status_code), elapsed)
            logger.error(
                "Failed to save lead to Airtable (%d): %s", response.status_code, response.text,
            )
            return LeadSaveResult(error=f"Airtable returned {response.status_code}")

        metrics.record_success("airtable", "POST /records", elapsed)
        try:
            data = response.json()
        except ValueError:
            data = None
        records = data.get("records") if isinstance(data, dict) else None
        first = records[0] if isinstance(records, list) and records else None
        record_id = first.get("id") if isinstance(first, dict) else None
        if not record_id:
            logger.error("Airtable accepted the lead but returned no record: %s", response.text)
            return LeadSaveResult(error="Airtable returned no record")

        logger.info("Lead saved to Airtable as %s", record_id)
        return LeadSaveResult(record_id=record_id)
