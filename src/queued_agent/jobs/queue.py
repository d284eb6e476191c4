"""FIFO handoff of ready job ids to workers.

Popping an id is the lease: a transport pop hands each id to exactly one
caller. There is no lease expiry, so a worker that dies after popping leaves
its job in `processing`.
"""

from __future__ import annotations

import queue
from typing import Protocol

import redis

from queued_agent.redis_client import translate_redis_errors


class JobQueue(Protocol):
    def push(self, job_id: str) -> None:
        """Publish a ready job id."""

    def pop(self, timeout: float) -> str | None:
        """Block up to `timeout` seconds for a job id."""


class InMemoryJobQueue:
    """Process-local queue backed by `queue.Queue`."""

    def __init__(self) -> None:
        self._queue: queue.Queue[str] = queue.Queue()

    def push(self, job_id: str) -> None:
        self._queue.put(job_id)

    def pop(self, timeout: float) -> str | None:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def __len__(self) -> int:
        return self._queue.qsize()


class RedisJobQueue:
    """Redis list queue: LPUSH to publish, BRPOP to lease."""

    def __init__(self, client: redis.Redis, *, key: str = "jobs:chat") -> None:
        self._redis = client
        self._key = key

    def push(self, job_id: str) -> None:
        with translate_redis_errors("queue push"):
            self._redis.lpush(self._key, job_id)

    def pop(self, timeout: float) -> str | None:
        with translate_redis_errors("queue pop"):
            item = self._redis.brpop([self._key], timeout=timeout)
        if item is None:
            return None
        _key, job_id = item
        return job_id
