"""Deterministic model client used when no external LLM is configured."""

from __future__ import annotations

import re
from typing import Any

from queued_agent.agent.tools import KNOWLEDGE_BASE_TOOL, NO_RESULTS
from queued_agent.types import (
    ConversationTurn,
    ModelDecision,
    ToolCallRequest,
    ToolResult,
    UserMessage,
)

_PASSAGE = re.compile(r"^\[(?P<rank>\d+)\]\s+(?P<body>.+)$", flags=re.DOTALL)
NO_EVIDENCE_ANSWER = "I could not find verifiable evidence in the indexed documents."


class DeterministicModelClient:
    """Answers from knowledge-base evidence without calling an LLM.

    Keeps the same contract as `LangChainModelClient`, so it drives the real
    orchestrator loop: the first round requests `knowledge_base` with the
    latest user message, the second round answers with the top passages.
    Useful for local/offline runs where `OPENAI_API_KEY` is not set.
    """

    def __init__(self, max_passages: int = 3) -> None:
        self.max_passages = max_passages

    def complete(
        self,
        system_prompt: str,
        transcript: list[ConversationTurn],
        tools: list[dict[str, Any]],
    ) -> ModelDecision:
        del system_prompt  # no reasoning to steer.
        question, evidence = _latest_exchange(transcript)

        if evidence is not None:
            return ModelDecision(text=self._build_answer(evidence))

        if question and _tool_available(tools, KNOWLEDGE_BASE_TOOL):
            return ModelDecision(
                tool_calls=[ToolCallRequest(name=KNOWLEDGE_BASE_TOOL, arguments={"query": question})]
            )
        return ModelDecision(text=NO_EVIDENCE_ANSWER)

    def _build_answer(self, evidence: ToolResult) -> str:
        if evidence.is_error or evidence.output.strip() == NO_RESULTS:
            return NO_EVIDENCE_ANSWER

        lines: list[str] = []
        for block in evidence.output.split("\n\n"):
            match = _PASSAGE.match(block.strip())
            if not match:
                continue
            body = " ".join(match.group("body").split())
            lines.append(f"{len(lines) + 1}. {body} [{match.group('rank')}]")
            if len(lines) >= self.max_passages:
                break
        return "\n".join(lines) if lines else NO_EVIDENCE_ANSWER


def _latest_exchange(
    transcript: list[ConversationTurn],
) -> tuple[str, ToolResult | None]:
    """Return the last user question and the knowledge-base result that followed it."""

    question = ""
    evidence: ToolResult | None = None
    for turn in transcript:
        if isinstance(turn, UserMessage):
            question = turn.text
            evidence = None
        elif isinstance(turn, ToolResult) and turn.tool_name == KNOWLEDGE_BASE_TOOL:
            evidence = turn
    return question, evidence


def _tool_available(tools: list[dict[str, Any]], name: str) -> bool:
    return any(tool.get("function", {}).get("name") == name for tool in tools)
