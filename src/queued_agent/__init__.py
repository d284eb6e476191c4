"""Queued agent package."""

from .config import AgentConfig, Settings, WorkerConfig

__all__ = ["AgentConfig", "Settings", "WorkerConfig"]
