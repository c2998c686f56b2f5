"""Name → tool mapping used by the driver to answer ``requires_action`` runs.

Tools are ordinary LangChain tools (``@tool`` functions or ``BaseTool``
subclasses).  Their argument schemas validate the JSON the assistant sends,
and the name the assistant calls them by is ``tool.name``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from langchain_core.tools import BaseTool

from assistant_relay.services.composer import AnswerComposer
from assistant_relay.services.leads import LeadSink
from assistant_relay.tools.documents import make_document_tools
from assistant_relay.tools.leads import make_lead_tools


class ToolRegistry:
    """Registry of the local tools the assistant is allowed to call."""

    def __init__(self, tools: Iterable[BaseTool] = ()) -> None:
        self._tools: dict[str, BaseTool] = {}
        for t in tools:
            self.register(t)

    def register(self, tool: BaseTool) -> None:
        """Add *tool*.  Rejects non-tools and duplicate names up front."""
        if not isinstance(tool, BaseTool):
            raise TypeError(f"Expected a LangChain BaseTool, got {type(tool).__name__}")
        if tool.name in self._tools:
            raise ValueError(f"A tool named {tool.name!r} is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    @property
    def names(self) -> list[str]:
        return sorted(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def build_default_registry(
    sink: LeadSink,
    composer: AnswerComposer,
    corpus: Mapping[str, str],
) -> ToolRegistry:
    """The tools the hosted assistant is configured to call."""
    return ToolRegistry([
        *make_lead_tools(sink),
        *make_document_tools(composer, corpus),
    ])
