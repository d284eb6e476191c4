"""Exception hierarchy shared by the job, retrieval and agent layers."""

from __future__ import annotations


class QueuedAgentError(Exception):
    """Base class for all errors raised by this package."""


class StorageUnavailable(QueuedAgentError):
    """Job store, queue or conversation store cannot be reached."""


class JobNotFound(QueuedAgentError):
    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class InvalidTransition(QueuedAgentError):
    """A status change that would break Queued -> Processing -> terminal order."""

    def __init__(self, job_id: str, current: str, requested: str) -> None:
        self.job_id = job_id
        self.current = current
        self.requested = requested
        super().__init__(f"Job {job_id}: cannot move from {current} to {requested}")


class EmbeddingProviderError(QueuedAgentError):
    """Embedding call failed after retries."""


class ModelProviderError(QueuedAgentError):
    """Language-model call failed after retries."""


class ToolError(QueuedAgentError):
    """Base class for tool registry errors."""


class DuplicateTool(ToolError):
    pass


class UnknownTool(ToolError):
    pass


class InvalidToolArguments(ToolError):
    pass


class ToolExecutionError(ToolError):
    """A registered handler raised while executing."""


class OrchestratorError(QueuedAgentError):
    """Fatal failure of one agent run."""

    kind = "OrchestratorError"


class ReasoningLoopExceeded(OrchestratorError):
    kind = "ReasoningLoopExceeded"

    def __init__(self, max_rounds: int) -> None:
        self.max_rounds = max_rounds
        super().__init__(f"No final answer after {max_rounds} reasoning rounds")


class OrchestratorTimeout(OrchestratorError):
    kind = "Timeout"

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Agent run exceeded {timeout_seconds:.1f}s")
