"""Language-model client contract and the LangChain chat-model adapter."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from queued_agent.config import AgentConfig, RetryConfig
from queued_agent.errors import ModelProviderError
from queued_agent.retry import call_with_retry
from queued_agent.types import (
    AssistantText,
    ConversationTurn,
    ModelDecision,
    ToolCallRequest,
    ToolInvocation,
    ToolResult,
    UserMessage,
)

logger = logging.getLogger(__name__)


class ModelClient(Protocol):
    """Black-box model: transcript + tool schemas in, final text or tool calls out."""

    def complete(
        self,
        system_prompt: str,
        transcript: list[ConversationTurn],
        tools: list[dict[str, Any]],
    ) -> ModelDecision:
        """Run one reasoning step."""


class LangChainModelClient:
    """Adapts any LangChain chat model that supports `bind_tools`."""

    def __init__(self, llm: Any, *, retry: RetryConfig | None = None) -> None:
        self.llm = llm
        self.retry = retry or RetryConfig()

    def complete(
        self,
        system_prompt: str,
        transcript: list[ConversationTurn],
        tools: list[dict[str, Any]],
    ) -> ModelDecision:
        messages: list[BaseMessage] = [SystemMessage(content=system_prompt)]
        messages.extend(to_langchain_messages(transcript))
        runnable = self.llm.bind_tools(tools) if tools else self.llm

        try:
            response = call_with_retry(
                lambda: runnable.invoke(messages),
                config=self.retry,
                retry_on=(Exception,),
                description="model completion",
            )
        except Exception as exc:
            raise ModelProviderError(f"Model call failed: {exc}") from exc
        return decision_from_message(response)


def to_langchain_messages(transcript: list[ConversationTurn]) -> list[BaseMessage]:
    messages: list[BaseMessage] = []
    for turn in transcript:
        if isinstance(turn, UserMessage):
            messages.append(HumanMessage(content=turn.text))
        elif isinstance(turn, AssistantText):
            messages.append(AIMessage(content=turn.text))
        elif isinstance(turn, ToolInvocation):
            messages.append(
                AIMessage(
                    content="",
                    tool_calls=[
                        {"name": turn.tool_name, "args": turn.arguments, "id": turn.call_id}
                    ],
                )
            )
        elif isinstance(turn, ToolResult):
            messages.append(
                ToolMessage(content=turn.output, tool_call_id=turn.call_id, name=turn.tool_name)
            )
        else:
            raise TypeError(f"Unsupported conversation turn: {turn!r}")
    return messages


def decision_from_message(message: Any) -> ModelDecision:
    tool_calls = [
        ToolCallRequest(
            name=str(call.get("name", "")),
            arguments=dict(call.get("args") or {}),
            call_id=str(call.get("id") or ""),
        )
        for call in getattr(message, "tool_calls", None) or []
    ]
    return ModelDecision(text=_message_text(message), tool_calls=tool_calls)


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict):
                if item.get("type", "text") == "text" and "text" in item:
                    parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts).strip()
    return str(content)


def create_chat_model(config: AgentConfig, api_key: str | None) -> Any | None:
    """Build the production chat model, or None when no API key is configured."""

    if not api_key:
        return None

    from langchain_openai import ChatOpenAI

    logger.info("Using OpenAI chat model %s", config.model)
    return ChatOpenAI(
        model=config.model,
        temperature=config.temperature,
        api_key=api_key,
        max_retries=0,
        timeout=config.run_timeout_seconds,
    )
