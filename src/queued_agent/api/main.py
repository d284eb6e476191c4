"""FastAPI front door: enqueue chat jobs and poll their status."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from queued_agent.config import Settings
from queued_agent.errors import EmbeddingProviderError, JobNotFound, StorageUnavailable
from queued_agent.obs.logging import configure_logging
from queued_agent.wiring import Components, build_components
from queued_agent.worker.loop import WorkerPool

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    conversation_id: str | None = None


class ChatResponse(BaseModel):
    job_id: str
    status: str
    conversation_id: str | None = None


class JobStatusResponse(BaseModel):
    job_id: str
    status: str
    result: str | None = None
    error: str | None = None
    conversation_id: str | None = None


class DocumentRequest(BaseModel):
    text: str = Field(min_length=1)
    doc_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


def create_app(components: Components, *, worker_pool: WorkerPool | None = None) -> FastAPI:
    """Build the API around explicit component handles.

    `/documents` needs an index the workers can read: either the shared
    Redis index, or the in-memory one when `worker_pool` runs the workers
    inside the API process.
    """

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if worker_pool is not None:
            worker_pool.start()
        try:
            yield
        finally:
            if worker_pool is not None:
                worker_pool.stop(timeout=components.settings.agent.run_timeout_seconds)

    app = FastAPI(title="Queued Agent", version="0.1.0", lifespan=lifespan)
    jobs = components.jobs

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "backend": components.settings.backend,
            "planner_mode": components.planner_mode,
            "embedded_workers": worker_pool is not None,
            "shared_index": components.shared_index,
        }

    @app.post("/chat", response_model=ChatResponse)
    def chat(request: ChatRequest) -> ChatResponse:
        try:
            job = jobs.enqueue(request.message, conversation_id=request.conversation_id)
        except StorageUnavailable as exc:
            logger.error("Failed to queue chat job: %s", exc)
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return ChatResponse(
            job_id=job.id, status=job.status.value, conversation_id=job.conversation_id
        )

    @app.get("/chat/jobs/{job_id}", response_model=JobStatusResponse)
    def job_status(job_id: str) -> JobStatusResponse:
        try:
            job = jobs.get(job_id)
        except JobNotFound as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except StorageUnavailable as exc:
            logger.error("Failed to read job %s: %s", job_id, exc)
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return JobStatusResponse(
            job_id=job.id,
            status=job.status.value,
            result=job.result,
            error=job.error,
            conversation_id=job.conversation_id,
        )

    def _require_shared_index() -> None:
        if worker_pool is None and not components.shared_index:
            raise HTTPException(
                status_code=409,
                detail="Workers run out of process with a private index; "
                "index documents with queued-agent-worker --documents",
            )

    @app.post("/documents")
    def ingest(request: DocumentRequest) -> dict[str, Any]:
        _require_shared_index()
        try:
            chunks = components.ingest.ingest_text(
                request.text, doc_id=request.doc_id, metadata=request.metadata
            )
        except EmbeddingProviderError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        except StorageUnavailable as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {
            "doc_id": chunks[0].doc_id if chunks else request.doc_id,
            "chunks_created": len(chunks),
            "chunk_ids": [chunk.chunk_id for chunk in chunks],
        }

    @app.delete("/documents/{doc_id}")
    def delete_document(doc_id: str) -> dict[str, Any]:
        _require_shared_index()
        try:
            components.retrieval.delete_document(doc_id)
        except StorageUnavailable as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"doc_id": doc_id, "deleted": True}

    return app


def _create_default_app() -> FastAPI:
    configure_logging()
    settings = Settings.from_env()
    components = build_components(settings)
    pool = (
        WorkerPool(components.jobs, components.orchestrator, settings.worker)
        if settings.backend == "memory"
        else None
    )
    return create_app(components, worker_pool=pool)


app = _create_default_app()
