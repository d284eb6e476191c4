"""Shared domain models."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def can_transition(current: JobStatus, requested: JobStatus) -> bool:
    return requested in _ALLOWED_TRANSITIONS[current]


class ChatJob(BaseModel):
    """A queued chat request and its processing outcome."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    message: str
    status: JobStatus = JobStatus.QUEUED
    result: str | None = None
    error: str | None = None
    conversation_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def with_status(
        self,
        status: JobStatus,
        *,
        result: str | None = None,
        error: str | None = None,
    ) -> "ChatJob":
        return self.model_copy(
            update={
                "status": status,
                "result": result if result is not None else self.result,
                "error": error if error is not None else self.error,
                "updated_at": _utcnow(),
            }
        )


@dataclass(slots=True)
class DocumentChunk:
    """A bounded-size span of a source document."""

    chunk_id: str
    doc_id: str
    text: str
    chunk_index: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class SearchResult:
    """A retrieval hit with its similarity score."""

    chunk: DocumentChunk
    score: float


@dataclass(slots=True)
class ChatMessage:
    """A persisted conversation message (role is `user` or `assistant`)."""

    role: str
    content: str


@dataclass(slots=True)
class UserMessage:
    text: str


@dataclass(slots=True)
class AssistantText:
    text: str


@dataclass(slots=True)
class ToolInvocation:
    tool_name: str
    arguments: dict[str, Any]
    call_id: str = ""


@dataclass(slots=True)
class ToolResult:
    tool_name: str
    output: str
    call_id: str = ""
    is_error: bool = False


ConversationTurn = Union[UserMessage, AssistantText, ToolInvocation, ToolResult]


@dataclass(slots=True)
class ToolCallRequest:
    """One tool call requested by the language model."""

    name: str
    arguments: dict[str, Any]
    call_id: str = ""


@dataclass(slots=True)
class ModelDecision:
    """Model output for one reasoning round: final text or tool calls."""

    text: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)

    @property
    def is_final(self) -> bool:
        return not self.tool_calls


@dataclass(slots=True)
class ToolTrace:
    """Trace record for an executed tool call."""

    name: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float
