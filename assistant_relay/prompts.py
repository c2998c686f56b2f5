"""Prompts for the document-grounded completions."""

from collections.abc import Mapping

ANSWER_SYSTEM_PROMPT = (
    "You are an expert advisor who answers specific questions using the "
    "relevant content of the documents provided."
)

ANSWER_PROMPT_TEMPLATE = """Question: "{question}"

Context from the documents:
{documents}

Instructions: Answer the question using only the relevant information from the documents.
"""

ANALYSIS_SYSTEM_PROMPT = "You are an assistant that specialises in reviewing answers."

ANALYSIS_PROMPT_TEMPLATE = """Question: "{question}"
Answer given: "{answer}"

Instructions: Assess the quality of this answer and say whether it meets the
criteria expected from the user's context.
"""


def format_documents(corpus: Mapping[str, str]) -> str:
    """Render the corpus as filename-labelled blocks."""
    return "".join(
        f"Content of {filename}:\n{text}\n\n" for filename, text in corpus.items()
    )


def get_answer_prompt(question: str, corpus: Mapping[str, str]) -> str:
    return ANSWER_PROMPT_TEMPLATE.format(
        question=question,
        documents=format_documents(corpus),
    )


def get_analysis_prompt(question: str, answer: str) -> str:
    return ANALYSIS_PROMPT_TEMPLATE.format(question=question, answer=answer)
