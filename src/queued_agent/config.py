"""Configuration models for the queued agent system."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field


class ChunkingConfig(BaseModel):
    """Configures fixed-size paragraph-packing chunking."""

    chunk_size: int = Field(default=1000, ge=50)


class RetrievalConfig(BaseModel):
    """Configures embedding and nearest-neighbor retrieval."""

    top_k: int = Field(default=5, ge=1)
    embedding_dimension: int = Field(default=256, ge=8)


class RetryConfig(BaseModel):
    """Exponential backoff policy for calls to external services."""

    max_attempts: int = Field(default=3, ge=1)
    initial_backoff_ms: int = Field(default=100, ge=0)
    max_backoff_ms: int = Field(default=5000, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)


class AgentConfig(BaseModel):
    """Configures the reasoning loop bounds."""

    max_rounds: int = Field(default=6, ge=1)
    run_timeout_seconds: float = Field(default=120.0, gt=0.0)
    knowledge_base_top_k: int = Field(default=5, ge=1)
    model: str = "gpt-4o-mini"
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)


class WorkerConfig(BaseModel):
    """Configures the worker pool and its store write retries."""

    concurrency: int = Field(default=4, ge=1)
    lease_timeout_seconds: float = Field(default=1.0, gt=0.0)
    idle_backoff_seconds: float = Field(default=1.0, ge=0.0)
    status_update_retry: RetryConfig = Field(
        default_factory=lambda: RetryConfig(max_attempts=5, initial_backoff_ms=200)
    )


class RedisConfig(BaseModel):
    """Configures the Redis-backed job store, queue, conversations and vector index."""

    url: str = "redis://localhost:6379/0"
    queue_key: str = "jobs:chat"
    vector_prefix: str = "vectors"
    result_ttl_seconds: int = Field(default=86400, ge=1)
    conversation_ttl_seconds: int = Field(default=604800, ge=1)
    socket_timeout: float = Field(default=10.0, gt=0.0)


class Settings(BaseModel):
    """Aggregated settings for the API and worker entrypoints."""

    backend: str = Field(default="redis", pattern="^(redis|memory)$")
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    openai_api_key: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, keeping defaults when unset."""

        agent = AgentConfig(
            model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            max_rounds=int(os.getenv("AGENT_MAX_ROUNDS", "6")),
            run_timeout_seconds=float(os.getenv("AGENT_RUN_TIMEOUT_SECONDS", "120")),
        )
        worker = WorkerConfig(
            concurrency=int(os.getenv("WORKER_CONCURRENCY", "4")),
            lease_timeout_seconds=float(os.getenv("WORKER_LEASE_TIMEOUT_SECONDS", "1.0")),
        )
        redis = RedisConfig(url=os.getenv("REDIS_URL", "redis://localhost:6379/0"))
        return cls(
            backend=os.getenv("QUEUED_AGENT_BACKEND", "redis"),
            chunking=ChunkingConfig(chunk_size=int(os.getenv("CHUNK_SIZE", "1000"))),
            agent=agent,
            worker=worker,
            redis=redis,
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        )
