"""Bounded exponential backoff for calls to external services."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from queued_agent.config import RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_seconds(config: RetryConfig, attempt: int) -> float:
    """Delay before retry number `attempt` (1-based)."""
    backoff_ms = min(
        config.initial_backoff_ms * (config.backoff_multiplier ** (attempt - 1)),
        config.max_backoff_ms,
    )
    return backoff_ms / 1000.0


def call_with_retry(
    func: Callable[[], T],
    *,
    config: RetryConfig,
    retry_on: tuple[type[BaseException], ...],
    description: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call `func`, retrying on `retry_on` exceptions up to `config.max_attempts`.

    The last exception is re-raised unchanged once attempts are exhausted.
    """

    attempt = 1
    while True:
        try:
            return func()
        except retry_on as exc:
            if attempt >= config.max_attempts:
                logger.error(
                    "%s failed after %d attempts: %s", description, attempt, exc
                )
                raise
            delay = backoff_seconds(config, attempt)
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                description,
                attempt,
                config.max_attempts,
                delay,
                exc,
            )
            sleep(delay)
            attempt += 1
