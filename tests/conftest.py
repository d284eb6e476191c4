from __future__ import annotations

import os
from collections import defaultdict
from typing import Any
from unittest.mock import MagicMock

import pytest

# Keep the module-level API app offline when tests import it.
os.environ.setdefault("QUEUED_AGENT_BACKEND", "memory")
os.environ.pop("OPENAI_API_KEY", None)

from queued_agent.agent.orchestrator import AgentOrchestrator
from queued_agent.agent.registry import ToolRegistry
from queued_agent.agent.tools import register_builtin_tools
from queued_agent.config import AgentConfig, RetrievalConfig, RetryConfig, WorkerConfig
from queued_agent.jobs.service import JobService, build_memory_job_service
from queued_agent.retrieval.embedder import HashingEmbedder
from queued_agent.retrieval.service import RetrievalService
from queued_agent.retrieval.vector_store import InMemoryVectorStore
from queued_agent.types import ConversationTurn, ModelDecision, ToolCallRequest

NO_BACKOFF = RetryConfig(max_attempts=3, initial_backoff_ms=0, max_backoff_ms=0)


class ScriptedModel:
    """Model stub returning queued decisions and recording every transcript it saw."""

    def __init__(self, decisions: list[ModelDecision]) -> None:
        self._decisions = list(decisions)
        self.calls: list[list[ConversationTurn]] = []
        self.tools_seen: list[list[dict[str, Any]]] = []

    def complete(
        self,
        system_prompt: str,
        transcript: list[ConversationTurn],
        tools: list[dict[str, Any]],
    ) -> ModelDecision:
        self.calls.append(list(transcript))
        self.tools_seen.append(tools)
        if not self._decisions:
            raise AssertionError("ScriptedModel ran out of decisions")
        return self._decisions.pop(0)


class LoopingModel:
    """Model stub that asks for the same tool forever."""

    def __init__(self, tool_name: str = "knowledge_base") -> None:
        self.tool_name = tool_name
        self.calls = 0

    def complete(
        self,
        system_prompt: str,
        transcript: list[ConversationTurn],
        tools: list[dict[str, Any]],
    ) -> ModelDecision:
        self.calls += 1
        return ModelDecision(
            tool_calls=[ToolCallRequest(name=self.tool_name, arguments={"query": "x"})]
        )


@pytest.fixture
def retrieval() -> RetrievalService:
    return RetrievalService(
        HashingEmbedder(dimension=64),
        InMemoryVectorStore(),
        RetrievalConfig(top_k=3),
        NO_BACKOFF,
    )


@pytest.fixture
def registry(retrieval: RetrievalService) -> ToolRegistry:
    registry = ToolRegistry()
    register_builtin_tools(registry, retrieval, top_k=2)
    return registry


@pytest.fixture
def jobs() -> JobService:
    return build_memory_job_service()


@pytest.fixture
def worker_config() -> WorkerConfig:
    return WorkerConfig(
        concurrency=2,
        lease_timeout_seconds=0.05,
        idle_backoff_seconds=0.0,
        status_update_retry=NO_BACKOFF,
    )


@pytest.fixture
def make_orchestrator(registry: ToolRegistry):
    def _make(model: Any, **config: Any) -> AgentOrchestrator:
        return AgentOrchestrator(
            model=model,
            tool_registry=registry,
            config=AgentConfig(**config),
        )

    return _make


@pytest.fixture
def scripted_model() -> type[ScriptedModel]:
    return ScriptedModel


@pytest.fixture
def looping_model() -> LoopingModel:
    return LoopingModel()


@pytest.fixture
def shared_redis() -> MagicMock:
    """Mock Redis client whose hash, set and sorted-set commands share state.

    Pipelines return the client itself, so queued commands apply immediately.
    """

    hashes: dict[str, dict[str, str]] = defaultdict(dict)
    zsets: dict[str, dict[str, float]] = defaultdict(dict)
    sets: dict[str, set[str]] = defaultdict(set)
    counters: dict[str, int] = defaultdict(int)
    client = MagicMock()

    def _incrby(key: str, amount: int = 1) -> int:
        counters[key] += amount
        return counters[key]

    def _zadd(key: str, mapping: dict[str, float], nx: bool = False) -> int:
        added = 0
        for member, score in mapping.items():
            if nx and member in zsets[key]:
                continue
            added += member not in zsets[key]
            zsets[key][member] = score
        return added

    def _zrange(key: str, start: int, end: int) -> list[str]:
        return [member for member, _ in sorted(zsets[key].items(), key=lambda item: item[1])]

    def _hdel(key: str, *fields: str) -> None:
        for name in fields:
            hashes[key].pop(name, None)

    def _zrem(key: str, *members: str) -> None:
        for member in members:
            zsets[key].pop(member, None)

    def _delete(*keys: str) -> None:
        for key in keys:
            hashes.pop(key, None)
            zsets.pop(key, None)
            sets.pop(key, None)

    client.incrby.side_effect = _incrby
    client.hset.side_effect = lambda key, name, value: hashes[key].__setitem__(name, value)
    client.hmget.side_effect = lambda key, names: [hashes[key].get(name) for name in names]
    client.hlen.side_effect = lambda key: len(hashes[key])
    client.hdel.side_effect = _hdel
    client.zadd.side_effect = _zadd
    client.zrange.side_effect = _zrange
    client.zrem.side_effect = _zrem
    client.sadd.side_effect = lambda key, *members: sets[key].update(members)
    client.smembers.side_effect = lambda key: set(sets[key])
    client.delete.side_effect = _delete
    client.pipeline.return_value = client
    client.execute.return_value = []
    return client
