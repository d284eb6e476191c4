"""Worker loop: lease a job, run the agent, persist the outcome."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from queued_agent.agent.orchestrator import AgentOrchestrator
from queued_agent.config import WorkerConfig
from queued_agent.errors import (
    InvalidTransition,
    JobNotFound,
    OrchestratorError,
    QueuedAgentError,
    StorageUnavailable,
)
from queued_agent.jobs.service import JobService
from queued_agent.retry import call_with_retry
from queued_agent.types import ChatJob, ChatMessage, JobStatus

logger = logging.getLogger(__name__)


class Worker:
    """Processes one job at a time from the shared queue.

    Infrastructure failures fail the job (or leave it `processing` when the
    store cannot be written) but never stop the worker.
    """

    def __init__(
        self,
        jobs: JobService,
        orchestrator: AgentOrchestrator,
        config: WorkerConfig | None = None,
        *,
        name: str = "worker-0",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.jobs = jobs
        self.orchestrator = orchestrator
        self.config = config or WorkerConfig()
        self.name = name
        self._sleep = sleep

    def run_forever(self, stop_event: threading.Event) -> None:
        logger.info("%s started", self.name)
        while not stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("%s hit an unexpected error, continuing", self.name)
                self._sleep(self.config.idle_backoff_seconds)
        logger.info("%s stopped", self.name)

    def run_once(self) -> str | None:
        """Lease and process at most one job; return its id, or None if idle."""

        try:
            job_id = self.jobs.lease(self.config.lease_timeout_seconds)
        except StorageUnavailable as exc:
            logger.error("%s cannot lease: %s", self.name, exc)
            self._sleep(self.config.idle_backoff_seconds)
            return None
        if job_id is None:
            return None
        self.process(job_id)
        return job_id

    def process(self, job_id: str) -> None:
        try:
            job = self._with_store_retry(lambda: self.jobs.get(job_id), f"load job {job_id}")
            self._persist(job_id, JobStatus.PROCESSING)
        except JobNotFound:
            logger.warning("%s leased unknown job %s, dropping it", self.name, job_id)
            return
        except InvalidTransition as exc:
            logger.warning("%s skipping redelivered job %s: %s", self.name, job_id, exc)
            return
        except StorageUnavailable as exc:
            logger.error("%s could not start job %s: %s", self.name, job_id, exc)
            return

        logger.info("%s processing job %s", self.name, job_id)
        status, result, error = self._execute(job)
        try:
            self._persist(job_id, status, result=result, error=error)
        except StorageUnavailable as exc:
            logger.error(
                "%s could not store outcome of job %s, it stays processing: %s",
                self.name,
                job_id,
                exc,
            )

    def _execute(self, job: ChatJob) -> tuple[JobStatus, str | None, str | None]:
        try:
            history = self._load_history(job)
            run = self.orchestrator.run(job.message, history=history)
        except OrchestratorError as exc:
            return JobStatus.FAILED, None, f"{exc.kind}: {exc}"
        except QueuedAgentError as exc:
            logger.error("Job %s failed: %s", job.id, exc)
            return JobStatus.FAILED, None, f"{type(exc).__name__}: {exc}"
        except Exception as exc:
            logger.exception("Job %s failed with an unexpected error", job.id)
            return JobStatus.FAILED, None, f"InternalError: {exc}"

        self._save_history(job, run.answer)
        return JobStatus.COMPLETED, run.answer, None

    def _load_history(self, job: ChatJob) -> list[ChatMessage]:
        if job.conversation_id is None:
            return []
        return self.jobs.conversations.load(job.conversation_id)

    def _save_history(self, job: ChatJob, answer: str) -> None:
        if job.conversation_id is None:
            return
        try:
            messages = self.jobs.conversations.load(job.conversation_id)
            messages.append(ChatMessage(role="user", content=job.message))
            messages.append(ChatMessage(role="assistant", content=answer))
            self.jobs.conversations.save(job.conversation_id, messages)
        except StorageUnavailable as exc:
            logger.warning("Conversation %s not saved: %s", job.conversation_id, exc)

    def _persist(
        self,
        job_id: str,
        status: JobStatus,
        *,
        result: str | None = None,
        error: str | None = None,
    ) -> ChatJob:
        return self._with_store_retry(
            lambda: self.jobs.update_status(job_id, status, result=result, error=error),
            f"set job {job_id} {status.value}",
        )

    def _with_store_retry(self, func: Callable[[], ChatJob], description: str) -> ChatJob:
        return call_with_retry(
            func,
            config=self.config.status_update_retry,
            retry_on=(StorageUnavailable,),
            description=description,
            sleep=self._sleep,
        )


class WorkerPool:
    """Fixed number of worker threads competing for jobs on one queue."""

    def __init__(
        self,
        jobs: JobService,
        orchestrator: AgentOrchestrator,
        config: WorkerConfig | None = None,
    ) -> None:
        self.config = config or WorkerConfig()
        self.workers = [
            Worker(jobs, orchestrator, self.config, name=f"worker-{index}")
            for index in range(self.config.concurrency)
        ]
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def start(self) -> None:
        if self._threads:
            raise RuntimeError("Worker pool already started")
        self._stop_event.clear()
        for worker in self.workers:
            thread = threading.Thread(
                target=worker.run_forever,
                args=(self._stop_event,),
                name=worker.name,
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        logger.info("Worker pool started with %d workers", len(self.workers))

    def stop(self, timeout: float | None = None) -> None:
        """Signal workers to stop after their current job and wait for them."""

        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        logger.info("Worker pool stopped")

    def wait(self) -> None:
        """Block until `stop` is called from another thread or a signal handler."""

        while not self._stop_event.wait(timeout=1.0):
            pass
