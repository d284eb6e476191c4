"""Builds the component graph shared by the API and worker entrypoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from queued_agent.agent.fallback import DeterministicModelClient
from queued_agent.agent.model import LangChainModelClient, ModelClient, create_chat_model
from queued_agent.agent.orchestrator import AgentOrchestrator
from queued_agent.agent.registry import ToolRegistry
from queued_agent.agent.tools import register_builtin_tools
from queued_agent.config import Settings
from queued_agent.ingest.chunker import FixedWindowChunker
from queued_agent.ingest.pipeline import IngestPipeline
from queued_agent.jobs.service import JobService, build_memory_job_service, build_redis_job_service
from queued_agent.obs.tracing import log_tool_trace
from queued_agent.retrieval.embedder import Embedder, HashingEmbedder, OpenAIEmbedder
from queued_agent.retrieval.service import RetrievalService
from queued_agent.redis_client import create_redis_client
from queued_agent.retrieval.vector_store import InMemoryVectorStore, RedisVectorStore, VectorStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Components:
    settings: Settings
    jobs: JobService
    retrieval: RetrievalService
    registry: ToolRegistry
    orchestrator: AgentOrchestrator
    ingest: IngestPipeline
    planner_mode: str
    shared_index: bool = False


def build_components(
    settings: Settings,
    *,
    jobs: JobService | None = None,
    model: ModelClient | None = None,
    embedder: Embedder | None = None,
) -> Components:
    """Wire explicit handles; pass `jobs`, `model` or `embedder` to override them."""

    vector_store: VectorStore
    if settings.backend == "memory":
        jobs = jobs or build_memory_job_service()
        vector_store = InMemoryVectorStore()
    else:
        client = create_redis_client(settings.redis)
        jobs = jobs or build_redis_job_service(settings.redis, client)
        vector_store = RedisVectorStore(client, prefix=settings.redis.vector_prefix)

    if embedder is None:
        embedder = (
            OpenAIEmbedder(dimension=settings.retrieval.embedding_dimension)
            if settings.openai_api_key
            else HashingEmbedder(settings.retrieval.embedding_dimension)
        )
    retrieval = RetrievalService(embedder, vector_store, settings.retrieval, settings.retry)

    registry = ToolRegistry()
    register_builtin_tools(registry, retrieval, top_k=settings.agent.knowledge_base_top_k)
    registry.set_observer(log_tool_trace)

    planner_mode = "custom"
    if model is None:
        llm = create_chat_model(settings.agent, settings.openai_api_key)
        if llm is not None:
            model = LangChainModelClient(llm, retry=settings.retry)
            planner_mode = "langchain"
        else:
            logger.warning("OPENAI_API_KEY not set, using deterministic model client")
            model = DeterministicModelClient()
            planner_mode = "deterministic"

    orchestrator = AgentOrchestrator(model=model, tool_registry=registry, config=settings.agent)
    ingest = IngestPipeline(FixedWindowChunker(settings.chunking), retrieval)
    return Components(
        settings=settings,
        jobs=jobs,
        retrieval=retrieval,
        registry=registry,
        orchestrator=orchestrator,
        ingest=ingest,
        planner_mode=planner_mode,
        shared_index=isinstance(vector_store, RedisVectorStore),
    )
