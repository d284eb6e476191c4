"""Durable job state keyed by job id."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

import redis

from queued_agent.errors import InvalidTransition, JobNotFound
from queued_agent.redis_client import translate_redis_errors
from queued_agent.types import ChatJob, JobStatus, can_transition

logger = logging.getLogger(__name__)


class JobStore(Protocol):
    """Key-value record of job state."""

    def create(self, job: ChatJob) -> None:
        """Persist a new job."""

    def get(self, job_id: str) -> ChatJob:
        """Load a job or raise `JobNotFound`."""

    def transition(
        self,
        job_id: str,
        status: JobStatus,
        *,
        result: str | None = None,
        error: str | None = None,
    ) -> ChatJob:
        """Atomically move a job to `status` and return the stored job."""


def apply_transition(
    job: ChatJob,
    status: JobStatus,
    *,
    result: str | None = None,
    error: str | None = None,
) -> ChatJob:
    """Return the job after moving it to `status`.

    Re-applying the terminal status a job already has returns the job unchanged,
    so a redelivered completion is harmless. Any other move that is not
    Queued -> Processing -> Completed|Failed raises `InvalidTransition`.
    """

    if job.status == status and status.is_terminal:
        return job
    if not can_transition(job.status, status):
        raise InvalidTransition(job.id, job.status.value, status.value)
    return job.with_status(status, result=result, error=error)


class InMemoryJobStore:
    """Thread-safe job store used for tests and single-process runs."""

    def __init__(self) -> None:
        self._jobs: dict[str, ChatJob] = {}
        self._lock = threading.Lock()

    def create(self, job: ChatJob) -> None:
        with self._lock:
            self._jobs[job.id] = job

    def get(self, job_id: str) -> ChatJob:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def transition(
        self,
        job_id: str,
        status: JobStatus,
        *,
        result: str | None = None,
        error: str | None = None,
    ) -> ChatJob:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFound(job_id)
            updated = apply_transition(job, status, result=result, error=error)
            self._jobs[job_id] = updated
        return updated


class RedisJobStore:
    """Job store keeping one JSON document per job under `job:status:{id}`."""

    def __init__(self, client: redis.Redis, *, ttl_seconds: int = 86400) -> None:
        self._redis = client
        self._ttl_seconds = ttl_seconds

    @staticmethod
    def key(job_id: str) -> str:
        return f"job:status:{job_id}"

    def create(self, job: ChatJob) -> None:
        with translate_redis_errors("job create"):
            self._redis.set(self.key(job.id), job.model_dump_json(), ex=self._ttl_seconds)

    def get(self, job_id: str) -> ChatJob:
        with translate_redis_errors("job read"):
            raw = self._redis.get(self.key(job_id))
        if raw is None:
            raise JobNotFound(job_id)
        return ChatJob.model_validate_json(raw)

    def transition(
        self,
        job_id: str,
        status: JobStatus,
        *,
        result: str | None = None,
        error: str | None = None,
    ) -> ChatJob:
        key = self.key(job_id)

        # WATCH/MULTI: redis-py re-runs this on WatchError if the key changed.
        def _update(pipe: redis.client.Pipeline) -> ChatJob:
            raw = pipe.get(key)
            if raw is None:
                raise JobNotFound(job_id)
            job = ChatJob.model_validate_json(raw)
            updated = apply_transition(job, status, result=result, error=error)
            if updated is not job:
                pipe.multi()
                pipe.set(key, updated.model_dump_json(), ex=self._ttl_seconds)
            return updated

        with translate_redis_errors("job status update"):
            updated = self._redis.transaction(_update, key, value_from_callable=True)
        logger.debug("Job %s stored with status %s", job_id, updated.status.value)
        return updated
