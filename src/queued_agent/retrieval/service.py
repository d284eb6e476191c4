"""Retrieval service: embed text and search the chunk index."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from queued_agent.config import RetrievalConfig, RetryConfig
from queued_agent.errors import EmbeddingProviderError
from queued_agent.retrieval.embedder import Embedder
from queued_agent.retrieval.vector_store import VectorStore
from queued_agent.retry import call_with_retry
from queued_agent.types import DocumentChunk, SearchResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetrievalService:
    """Front for the embedding provider and the vector index.

    Embedding calls are retried with bounded backoff; after the last attempt
    the failure surfaces as `EmbeddingProviderError`. Search never fails on an
    empty index.
    """

    def __init__(
        self,
        embedder: Embedder,
        vector_store: VectorStore,
        config: RetrievalConfig | None = None,
        retry: RetryConfig | None = None,
    ) -> None:
        self.embedder = embedder
        self.vector_store = vector_store
        self.config = config or RetrievalConfig()
        self.retry = retry or RetryConfig()

    def embed(self, text: str) -> list[float]:
        return self._with_retry(lambda: self.embedder.embed_query(text), "embed query")

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return self._with_retry(
            lambda: self.embedder.embed_documents(texts), f"embed {len(texts)} documents"
        )

    def search(self, query_embedding: list[float], top_k: int) -> list[SearchResult]:
        if top_k <= 0:
            return []
        return self.vector_store.search(query_embedding, top_k)

    def retrieve(self, query: str, top_k: int | None = None) -> list[SearchResult]:
        limit = self.config.top_k if top_k is None else top_k
        results = self.search(self.embed(query), limit)
        logger.debug("Retrieved %d chunks for query %r", len(results), query[:80])
        return results

    def index_chunks(self, chunks: list[DocumentChunk]) -> None:
        if not chunks:
            return
        embeddings = self.embed_many([chunk.text for chunk in chunks])
        self.vector_store.upsert(chunks, embeddings)

    def delete_document(self, doc_id: str) -> None:
        self.vector_store.delete_document(doc_id)

    def _with_retry(self, func: Callable[[], T], description: str) -> T:
        try:
            # Provider SDKs raise their own exception types; treat any of them
            # as a transport/quota failure.
            return call_with_retry(
                func,
                config=self.retry,
                retry_on=(Exception,),
                description=description,
            )
        except Exception as exc:
            raise EmbeddingProviderError(f"{description} failed: {exc}") from exc
