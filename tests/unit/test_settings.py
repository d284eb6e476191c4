import pytest
from pydantic import ValidationError

from queued_agent.config import Settings


def test_from_env_reads_overrides(monkeypatch) -> None:
    monkeypatch.setenv("QUEUED_AGENT_BACKEND", "memory")
    monkeypatch.setenv("AGENT_MAX_ROUNDS", "3")
    monkeypatch.setenv("WORKER_CONCURRENCY", "8")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/2")
    monkeypatch.setenv("CHUNK_SIZE", "400")

    settings = Settings.from_env()

    assert settings.backend == "memory"
    assert settings.agent.max_rounds == 3
    assert settings.worker.concurrency == 8
    assert settings.redis.url == "redis://cache:6379/2"
    assert settings.redis.queue_key == "jobs:chat"
    assert settings.chunking.chunk_size == 400
    assert settings.openai_api_key is None


def test_unknown_backend_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(backend="postgres")
