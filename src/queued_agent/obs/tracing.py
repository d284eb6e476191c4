"""Per-run tracing: timers, token estimates and run summaries."""

from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass, field

from queued_agent.types import ToolTrace

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]", flags=re.UNICODE)


@dataclass(slots=True)
class RunTrace:
    """Summary of one orchestrator run, logged when the run ends."""

    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    rounds: int = 0
    tool_traces: list[ToolTrace] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: float = 0.0
    outcome: str = "running"

    def as_log_fields(self) -> dict[str, object]:
        return {
            "run_id": self.run_id,
            "rounds": self.rounds,
            "tools": [trace.name for trace in self.tool_traces],
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "latency_ms": round(self.latency_ms, 1),
            "outcome": self.outcome,
        }


class Timer:
    """Simple context timer used by the orchestrator."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0


def estimate_token_count(text: str) -> int:
    return len(_TOKEN_PATTERN.findall(text))


def log_tool_trace(trace: ToolTrace) -> None:
    """Registry observer that logs every successful tool call."""
    logger.info(
        "tool=%s latency_ms=%.1f input=%s output=%r",
        trace.name,
        trace.latency_ms,
        trace.input_payload,
        trace.output_preview[:120],
    )
