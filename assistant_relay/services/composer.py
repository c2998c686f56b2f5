"""Chat-completion calls grounded in the PDF corpus.

Both entry points follow a "never crash the answer path" policy: any
failure is logged, recorded as a metric, and replaced by a fixed fallback
message that is safe to show to the user.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from assistant_relay.config import COMPLETION_MODEL, OPENAI_API_KEY, OPENAI_BASE_URL
from assistant_relay.prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    ANSWER_SYSTEM_PROMPT,
    get_analysis_prompt,
    get_answer_prompt,
)
from assistant_relay.services.metrics import metrics

logger = logging.getLogger(__name__)

ANSWER_FALLBACK = "Sorry, there was an error processing your request."
ANALYSIS_FALLBACK = "The answer could not be analyzed."


def _build_answer_llm() -> ChatOpenAI:
    """Low-temperature model for document-grounded answers."""
    return ChatOpenAI(
        model=COMPLETION_MODEL,
        api_key=OPENAI_API_KEY,
        base_url=OPENAI_BASE_URL,
        temperature=0.3,
        max_tokens=1000,
    )


def _build_analysis_llm() -> ChatOpenAI:
    return ChatOpenAI(
        model=COMPLETION_MODEL,
        api_key=OPENAI_API_KEY,
        base_url=OPENAI_BASE_URL,
        temperature=0.5,
        max_tokens=500,
    )


class AnswerComposer:
    """Builds prompts from the corpus and returns trimmed completion text."""

    def __init__(
        self,
        answer_llm: BaseChatModel | None = None,
        analysis_llm: BaseChatModel | None = None,
    ):
        self._answer_llm = answer_llm or _build_answer_llm()
        self._analysis_llm = analysis_llm or _build_analysis_llm()

    async def _complete(
        self,
        llm: BaseChatModel,
        operation: str,
        system_prompt: str,
        prompt: str,
        fallback: str,
    ) -> str:
        t0 = time.perf_counter()
        try:
            response = await llm.ainvoke(
                [SystemMessage(content=system_prompt), HumanMessage(content=prompt)]
            )
        except Exception as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure(
                "openai", operation, error_type=type(exc).__name__, latency_ms=elapsed,
            )
            logger.error("Completion %s failed: %s", operation, exc)
            return fallback

        elapsed = (time.perf_counter() - t0) * 1000
        metrics.record_success("openai", operation, latency_ms=elapsed)
        return str(response.content).strip()

    async def compose(self, question: str, corpus: Mapping[str, str]) -> str:
        """Answer *question* using only the text in *corpus*."""
        return await self._complete(
            self._answer_llm,
            "compose_answer",
            ANSWER_SYSTEM_PROMPT,
            get_answer_prompt(question, corpus),
            ANSWER_FALLBACK,
        )

    async def analyze(self, question: str, answer: str) -> str:
        """Ask the model to assess how well *answer* addresses *question*."""
        return await self._complete(
            self._analysis_llm,
            "analyze_answer",
            ANALYSIS_SYSTEM_PROMPT,
            get_analysis_prompt(question, answer),
            ANALYSIS_FALLBACK,
        )
