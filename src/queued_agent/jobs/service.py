"""Job lifecycle facade used by the API (enqueue, status) and workers (lease, update)."""

from __future__ import annotations

import logging
import uuid

import redis

from queued_agent.config import RedisConfig
from queued_agent.redis_client import create_redis_client
from queued_agent.jobs.conversations import (
    ConversationStore,
    InMemoryConversationStore,
    RedisConversationStore,
)
from queued_agent.jobs.queue import InMemoryJobQueue, JobQueue, RedisJobQueue
from queued_agent.jobs.store import InMemoryJobStore, JobStore, RedisJobStore
from queued_agent.types import ChatJob, JobStatus

logger = logging.getLogger(__name__)


class JobService:
    """Combines a job store and a job queue behind the lifecycle contract.

    `enqueue` writes the job before publishing its id, so a worker that leases
    the id can always load the job. A job without a conversation id starts a
    new conversation, so the caller can continue it with the returned id.
    """

    def __init__(
        self,
        store: JobStore,
        queue: JobQueue,
        conversations: ConversationStore | None = None,
    ) -> None:
        self.store = store
        self.queue = queue
        self.conversations = conversations or InMemoryConversationStore()

    def enqueue(self, message: str, *, conversation_id: str | None = None) -> ChatJob:
        job = ChatJob(message=message, conversation_id=conversation_id or str(uuid.uuid4()))
        self.store.create(job)
        self.queue.push(job.id)
        logger.info("Job %s queued", job.id)
        return job

    def lease(self, timeout: float) -> str | None:
        return self.queue.pop(timeout)

    def get(self, job_id: str) -> ChatJob:
        return self.store.get(job_id)

    def update_status(
        self,
        job_id: str,
        status: JobStatus,
        *,
        result: str | None = None,
        error: str | None = None,
    ) -> ChatJob:
        job = self.store.transition(job_id, status, result=result, error=error)
        logger.info("Job %s -> %s", job_id, job.status.value)
        return job


def build_memory_job_service() -> JobService:
    return JobService(InMemoryJobStore(), InMemoryJobQueue(), InMemoryConversationStore())


def build_redis_job_service(config: RedisConfig, client: redis.Redis | None = None) -> JobService:
    client = client or create_redis_client(config)
    return JobService(
        RedisJobStore(client, ttl_seconds=config.result_ttl_seconds),
        RedisJobQueue(client, key=config.queue_key),
        RedisConversationStore(client, ttl_seconds=config.conversation_ttl_seconds),
    )
