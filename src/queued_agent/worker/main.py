"""Worker process entrypoint (`queued-agent-worker`)."""

from __future__ import annotations

import argparse
import logging
import signal
from types import FrameType

from queued_agent.config import Settings
from queued_agent.obs.logging import configure_logging
from queued_agent.wiring import build_components
from queued_agent.worker.loop import WorkerPool

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run chat job workers.")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Number of worker threads (default: WORKER_CONCURRENCY or 4).",
    )
    parser.add_argument(
        "--documents",
        nargs="*",
        default=[],
        help="Text files to index into this worker's knowledge base at startup.",
    )
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    configure_logging(args.log_level)

    settings = Settings.from_env()
    if args.concurrency is not None:
        settings.worker.concurrency = args.concurrency

    components = build_components(settings)
    if args.documents:
        chunks = components.ingest.ingest_many(args.documents)
        logger.info("Indexed %d chunks from %d documents", len(chunks), len(args.documents))

    pool = WorkerPool(components.jobs, components.orchestrator, settings.worker)

    def _shutdown(signum: int, frame: FrameType | None) -> None:
        logger.info("Received signal %d, stopping workers", signum)
        pool.stop(timeout=settings.agent.run_timeout_seconds)

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    logger.info(
        "Starting %d workers (backend=%s, planner=%s)",
        settings.worker.concurrency,
        settings.backend,
        components.planner_mode,
    )
    pool.start()
    pool.wait()


if __name__ == "__main__":
    main()
