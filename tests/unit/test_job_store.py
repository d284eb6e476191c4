import threading

import pytest

from queued_agent.errors import InvalidTransition, JobNotFound
from queued_agent.jobs.queue import InMemoryJobQueue
from queued_agent.jobs.service import JobService
from queued_agent.types import JobStatus


def test_enqueue_creates_queued_job_before_publishing(jobs: JobService) -> None:
    job = jobs.enqueue("hello")

    assert jobs.get(job.id).status is JobStatus.QUEUED
    assert jobs.lease(0.01) == job.id
    assert jobs.lease(0.01) is None


def test_status_moves_forward_only(jobs: JobService) -> None:
    job = jobs.enqueue("hello")

    with pytest.raises(InvalidTransition):
        jobs.update_status(job.id, JobStatus.COMPLETED, result="too early")

    jobs.update_status(job.id, JobStatus.PROCESSING)
    done = jobs.update_status(job.id, JobStatus.COMPLETED, result="hi")

    assert done.status is JobStatus.COMPLETED
    assert done.result == "hi"
    assert done.error is None
    assert done.updated_at >= done.created_at
    with pytest.raises(InvalidTransition) as excinfo:
        jobs.update_status(job.id, JobStatus.FAILED, error="late")
    assert excinfo.value.current == "completed"
    assert jobs.get(job.id).result == "hi"


def test_reapplying_terminal_status_is_a_no_op(jobs: JobService) -> None:
    job = jobs.enqueue("hello")
    jobs.update_status(job.id, JobStatus.PROCESSING)
    first = jobs.update_status(job.id, JobStatus.FAILED, error="Timeout: too slow")

    again = jobs.update_status(job.id, JobStatus.FAILED, error="something else")

    assert again == first
    assert jobs.get(job.id).error == "Timeout: too slow"


def test_processing_cannot_be_entered_twice(jobs: JobService) -> None:
    job = jobs.enqueue("hello")
    jobs.update_status(job.id, JobStatus.PROCESSING)

    with pytest.raises(InvalidTransition):
        jobs.update_status(job.id, JobStatus.PROCESSING)


def test_unknown_job_raises_not_found(jobs: JobService) -> None:
    with pytest.raises(JobNotFound):
        jobs.get("missing")
    with pytest.raises(JobNotFound):
        jobs.update_status("missing", JobStatus.PROCESSING)


def test_each_job_id_is_leased_by_exactly_one_consumer() -> None:
    queue = InMemoryJobQueue()
    job_ids = [f"job-{i}" for i in range(200)]
    for job_id in job_ids:
        queue.push(job_id)

    leased: list[str] = []
    lock = threading.Lock()

    def _consume() -> None:
        while True:
            job_id = queue.pop(0.05)
            if job_id is None:
                return
            with lock:
                leased.append(job_id)

    threads = [threading.Thread(target=_consume) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert sorted(leased) == sorted(job_ids)
    assert len(queue) == 0


def test_queue_is_fifo() -> None:
    queue = InMemoryJobQueue()
    for job_id in ("a", "b", "c"):
        queue.push(job_id)

    assert [queue.pop(0.01) for _ in range(3)] == ["a", "b", "c"]


def test_enqueue_starts_a_conversation_when_none_given(jobs: JobService) -> None:
    first = jobs.enqueue("hello")
    second = jobs.enqueue("again", conversation_id=first.conversation_id)

    assert first.conversation_id
    assert second.conversation_id == first.conversation_id
    assert jobs.enqueue("other").conversation_id != first.conversation_id
