"""Built-in tool implementations for the agent."""

from __future__ import annotations

from pydantic import BaseModel, Field

from queued_agent.agent.registry import ToolRegistry, ToolSpec
from queued_agent.retrieval.service import RetrievalService

KNOWLEDGE_BASE_TOOL = "knowledge_base"
NO_RESULTS = "No relevant documents found."


class KnowledgeBaseInput(BaseModel):
    query: str = Field(min_length=1, description="The search query")


def register_builtin_tools(
    registry: ToolRegistry,
    retrieval: RetrievalService,
    *,
    top_k: int = 5,
) -> None:
    """Register the default tool set.

    Tools:
    - `knowledge_base`: embeds the query, searches the chunk index with a
      fixed `top_k` and returns the ranked passages as one numbered text block.
    """

    def _knowledge_base(input_data: KnowledgeBaseInput) -> str:
        hits = retrieval.retrieve(input_data.query, top_k=top_k)
        if not hits:
            return NO_RESULTS
        return "\n\n".join(f"[{rank}] {hit.chunk.text}" for rank, hit in enumerate(hits, start=1))

    registry.register(
        ToolSpec(
            name=KNOWLEDGE_BASE_TOOL,
            description="Search the knowledge base for relevant information.",
            args_schema=KnowledgeBaseInput,
            handler=_knowledge_base,
        )
    )
