"""Fixed-size chunking of document text."""

from __future__ import annotations

import re
import uuid

from queued_agent.config import ChunkingConfig
from queued_agent.types import DocumentChunk

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


class FixedWindowChunker:
    """Packs paragraphs into windows of at most `chunk_size` characters.

    Paragraphs (blank-line separated) are joined with a blank line until the
    next one would overflow the window. A paragraph longer than `chunk_size`
    is cut into consecutive `chunk_size` slices.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    def chunk_text(
        self,
        text: str,
        *,
        doc_id: str,
        metadata: dict[str, object] | None = None,
    ) -> list[DocumentChunk]:
        windows = self._windows(text)
        return [
            DocumentChunk(
                chunk_id=str(uuid.uuid4()),
                doc_id=doc_id,
                text=window,
                chunk_index=index,
                metadata={**(metadata or {}), "chunk_index": index},
            )
            for index, window in enumerate(windows)
        ]

    def _windows(self, text: str) -> list[str]:
        size = self.config.chunk_size
        windows: list[str] = []
        current = ""

        for paragraph in self._split_paragraphs(text):
            if len(paragraph) > size:
                if current:
                    windows.append(current)
                    current = ""
                windows.extend(paragraph[i : i + size] for i in range(0, len(paragraph), size))
                continue

            if current and len(current) + len(paragraph) + 2 > size:
                windows.append(current)
                current = ""
            current = f"{current}\n\n{paragraph}" if current else paragraph

        if current:
            windows.append(current)
        return windows

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        return [part.strip() for part in _PARAGRAPH_SPLIT.split(text) if part.strip()]
