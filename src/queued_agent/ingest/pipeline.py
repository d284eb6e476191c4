"""Ingest pipeline: chunk -> embed -> upsert."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any

from queued_agent.ingest.chunker import FixedWindowChunker
from queued_agent.retrieval.service import RetrievalService
from queued_agent.types import DocumentChunk

logger = logging.getLogger(__name__)


class IngestPipeline:
    """Coordinates chunker and retrieval index.

    Ingestion runs outside the worker hot loop; workers only read the index.
    """

    def __init__(self, chunker: FixedWindowChunker, retrieval: RetrievalService) -> None:
        self._chunker = chunker
        self._retrieval = retrieval

    def ingest_text(
        self,
        text: str,
        *,
        doc_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> list[DocumentChunk]:
        """Chunk and index one document, returning the created chunks."""

        document_id = doc_id or str(uuid.uuid4())
        chunks = self._chunker.chunk_text(text, doc_id=document_id, metadata=metadata)
        self._retrieval.index_chunks(chunks)
        logger.info("Indexed document %s as %d chunks", document_id, len(chunks))
        return chunks

    def ingest_path(self, path: str | Path) -> list[DocumentChunk]:
        """Ingest a UTF-8 text file, using its stem as the document id."""

        file_path = Path(path)
        return self.ingest_text(
            file_path.read_text(encoding="utf-8"),
            doc_id=file_path.stem,
            metadata={"source": str(file_path)},
        )

    def ingest_many(self, paths: list[str | Path]) -> list[DocumentChunk]:
        """Ingest many paths and return flattened chunk list."""

        all_chunks: list[DocumentChunk] = []
        for path in paths:
            all_chunks.extend(self.ingest_path(path))
        return all_chunks
