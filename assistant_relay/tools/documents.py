"""LangChain tools that answer from, and review answers against, the PDF corpus."""

from __future__ import annotations

from collections.abc import Mapping

from langchain_core.tools import BaseTool, tool

from assistant_relay.services.composer import AnswerComposer

NO_DOCUMENTS_MESSAGE = "No reference documents are loaded, so this question cannot be answered from them."


def make_document_tools(composer: AnswerComposer, corpus: Mapping[str, str]) -> list[BaseTool]:
    """Build the document tools over a corpus loaded at start-up."""

    @tool
    async def answer_from_documents(question: str) -> str:
        """Answer a question using only the content of the reference documents.

        Args:
            question: The user's question, as specific as possible.
        """
        if not corpus:
            return NO_DOCUMENTS_MESSAGE
        return await composer.compose(question, corpus)

    @tool
    async def analyze_answer(question: str, answer: str) -> str:
        """Review an answer and say whether it properly addresses the question.

        Args:
            question: The question that was asked.
            answer: The answer that was given.
        """
        return await composer.analyze(question, answer)

    return [answer_from_documents, analyze_answer]
