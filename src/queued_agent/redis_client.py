"""Redis client construction and error translation shared by the Redis-backed stores."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import redis

from queued_agent.config import RedisConfig
from queued_agent.errors import StorageUnavailable

logger = logging.getLogger(__name__)


def create_redis_client(config: RedisConfig) -> redis.Redis:
    """Create a pooled synchronous client that decodes responses to `str`."""

    logger.info("Creating Redis client for %s", config.url)
    return redis.Redis.from_url(
        config.url,
        socket_timeout=config.socket_timeout,
        socket_connect_timeout=config.socket_timeout,
        decode_responses=True,
    )


@contextmanager
def translate_redis_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except redis.exceptions.RedisError as exc:
        raise StorageUnavailable(f"Redis unavailable during {operation}: {exc}") from exc
