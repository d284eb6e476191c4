"""ReAct-style orchestrator: model reasoning rounds interleaved with tool calls."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from queued_agent.agent.model import ModelClient
from queued_agent.agent.registry import ToolRegistry
from queued_agent.config import AgentConfig
from queued_agent.errors import (
    OrchestratorError,
    OrchestratorTimeout,
    ReasoningLoopExceeded,
    ToolError,
)
from queued_agent.obs.tracing import RunTrace, Timer, estimate_token_count
from queued_agent.types import (
    AssistantText,
    ChatMessage,
    ConversationTurn,
    ToolCallRequest,
    ToolInvocation,
    ToolResult,
    ToolTrace,
    UserMessage,
)

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """
You are a helpful assistant answering questions for a chat service.

Rules:
1) Use the `knowledge_base` tool to search for relevant information when the
   question may be covered by indexed documents.
2) Base factual statements on tool outputs and cite passages by their number,
   e.g. [1].
3) If a tool reports an error or finds nothing, say so plainly and answer from
   general knowledge only when that is safe.
4) Keep answers concise and avoid unnecessary tool calls.
""".strip()


@dataclass(slots=True)
class AgentRun:
    """Outcome of a successful run."""

    answer: str
    transcript: list[ConversationTurn]
    rounds: int
    trace: RunTrace = field(default_factory=RunTrace)


class AgentOrchestrator:
    """Drives one conversation thread to a final answer.

    States: Reasoning (one model call) -> Done when the model answers in text,
    or back to Reasoning after executing every requested tool in order.
    The loop makes at most `max_rounds` model calls; running out raises
    `ReasoningLoopExceeded`. A wall-clock deadline is checked before each
    model call and each tool call.

    Tool failures (unknown tool, bad arguments, handler errors) are written to
    the transcript as error results so the model can recover. Model transport
    errors propagate and fail the run.

    The orchestrator keeps no state between runs and is safe to share between
    worker threads.
    """

    def __init__(
        self,
        *,
        model: ModelClient,
        tool_registry: ToolRegistry,
        config: AgentConfig | None = None,
        system_prompt: str = _SYSTEM_PROMPT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.model = model
        self.tool_registry = tool_registry
        self.config = config or AgentConfig()
        self.system_prompt = system_prompt
        self._clock = clock

    def run(self, message: str, *, history: list[ChatMessage] | None = None) -> AgentRun:
        transcript: list[ConversationTurn] = _history_turns(history or [])
        transcript.append(UserMessage(text=message))
        trace = RunTrace(input_tokens=estimate_token_count(message))
        deadline = self._clock() + self.config.run_timeout_seconds
        tools = self.tool_registry.tool_schemas()

        timer = Timer()
        try:
            with timer:
                answer = self._loop(transcript, tools, trace, deadline)
        except OrchestratorError as exc:
            trace.latency_ms = timer.elapsed_ms
            trace.outcome = exc.kind
            logger.warning("Agent run failed: %s", trace.as_log_fields())
            raise
        trace.latency_ms = timer.elapsed_ms
        trace.outcome = "completed"
        trace.output_tokens = estimate_token_count(answer)
        logger.info("Agent run finished: %s", trace.as_log_fields())
        return AgentRun(answer=answer, transcript=transcript, rounds=trace.rounds, trace=trace)

    def _loop(
        self,
        transcript: list[ConversationTurn],
        tools: list[dict[str, object]],
        trace: RunTrace,
        deadline: float,
    ) -> str:
        for round_number in range(1, self.config.max_rounds + 1):
            self._check_deadline(deadline)
            trace.rounds = round_number
            decision = self.model.complete(self.system_prompt, list(transcript), tools)

            if decision.is_final:
                transcript.append(AssistantText(text=decision.text))
                return decision.text

            logger.debug(
                "Round %d requested tools: %s",
                round_number,
                [call.name for call in decision.tool_calls],
            )
            if decision.text:
                transcript.append(AssistantText(text=decision.text))
            for index, call in enumerate(decision.tool_calls):
                self._check_deadline(deadline)
                call_id = call.call_id or f"call-{round_number}-{index}"
                transcript.append(
                    ToolInvocation(tool_name=call.name, arguments=call.arguments, call_id=call_id)
                )
                transcript.append(self._execute(call, call_id, trace))

        logger.warning("No final answer after %d rounds", self.config.max_rounds)
        raise ReasoningLoopExceeded(self.config.max_rounds)

    def _execute(self, call: ToolCallRequest, call_id: str, trace: RunTrace) -> ToolResult:
        with Timer() as timer:
            try:
                output = self.tool_registry.invoke(call.name, call.arguments)
                is_error = False
            except ToolError as exc:
                output = f"ERROR: {exc}"
                is_error = True
        trace.tool_traces.append(
            ToolTrace(
                name=call.name,
                input_payload=call.arguments,
                output_preview=output[:320],
                latency_ms=timer.elapsed_ms,
            )
        )
        return ToolResult(tool_name=call.name, output=output, call_id=call_id, is_error=is_error)

    def _check_deadline(self, deadline: float) -> None:
        if self._clock() >= deadline:
            raise OrchestratorTimeout(self.config.run_timeout_seconds)


def _history_turns(history: list[ChatMessage]) -> list[ConversationTurn]:
    turns: list[ConversationTurn] = []
    for message in history:
        if message.role == "user":
            turns.append(UserMessage(text=message.content))
        elif message.role == "assistant":
            turns.append(AssistantText(text=message.content))
    return turns
