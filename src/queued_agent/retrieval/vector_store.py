"""Vector index interface with in-memory and Redis-backed implementations."""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass
from math import sqrt
from typing import Protocol

import redis

from queued_agent.redis_client import translate_redis_errors
from queued_agent.types import DocumentChunk, SearchResult


class VectorStore(Protocol):
    """Minimal vector index contract for retrieval."""

    def upsert(self, chunks: list[DocumentChunk], embeddings: list[list[float]]) -> None:
        """Insert or update chunk vectors."""

    def search(self, query_embedding: list[float], top_k: int) -> list[SearchResult]:
        """Return at most `top_k` chunks by descending similarity."""

    def delete_document(self, doc_id: str) -> None:
        """Remove every chunk of a document."""


@dataclass(slots=True, frozen=True)
class _StoredVector:
    chunk: DocumentChunk
    embedding: tuple[float, ...]


class InMemoryVectorStore:
    """Cosine-similarity index kept in process memory.

    Writers build a new mapping and swap it in under a lock; readers take the
    current mapping without locking, so concurrent searches never wait on each
    other. Dict order is insertion order, which is the tie-break for equal
    scores.
    """

    def __init__(self) -> None:
        self._store: dict[str, _StoredVector] = {}
        self._write_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._store)

    def upsert(self, chunks: list[DocumentChunk], embeddings: list[list[float]]) -> None:
        if len(chunks) != len(embeddings):
            raise ValueError("chunks and embeddings must have the same length")
        with self._write_lock:
            updated = dict(self._store)
            for chunk, embedding in zip(chunks, embeddings, strict=True):
                updated[chunk.chunk_id] = _StoredVector(chunk=chunk, embedding=tuple(embedding))
            self._store = updated

    def delete_document(self, doc_id: str) -> None:
        with self._write_lock:
            self._store = {
                chunk_id: record
                for chunk_id, record in self._store.items()
                if record.chunk.doc_id != doc_id
            }

    def search(self, query_embedding: list[float], top_k: int) -> list[SearchResult]:
        if top_k <= 0:
            return []
        snapshot = self._store
        scored = [
            SearchResult(
                chunk=record.chunk,
                score=_cosine_similarity(query_embedding, record.embedding),
            )
            for record in snapshot.values()
        ]
        # sorted() is stable, so equal scores keep insertion order.
        ranked = sorted(scored, key=lambda item: item.score, reverse=True)
        return ranked[:top_k]


def _cosine_similarity(a: list[float] | tuple[float, ...], b: tuple[float, ...]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)


class RedisVectorStore:
    """Vector index kept in Redis so the API and every worker process share it.

    Layout under `prefix`:
    - `{prefix}:chunks` hash of chunk id -> JSON chunk with its embedding
    - `{prefix}:order` sorted set of chunk ids scored by insertion sequence
    - `{prefix}:doc:{doc_id}` set of the document's chunk ids

    Search loads every vector and scores it in process, so this suits
    knowledge bases of a few thousand chunks.
    """

    def __init__(self, client: redis.Redis, *, prefix: str = "vectors") -> None:
        self._redis = client
        self._prefix = prefix

    @property
    def chunks_key(self) -> str:
        return f"{self._prefix}:chunks"

    @property
    def order_key(self) -> str:
        return f"{self._prefix}:order"

    def doc_key(self, doc_id: str) -> str:
        return f"{self._prefix}:doc:{doc_id}"

    def __len__(self) -> int:
        with translate_redis_errors("vector count"):
            return int(self._redis.hlen(self.chunks_key))

    def upsert(self, chunks: list[DocumentChunk], embeddings: list[list[float]]) -> None:
        if len(chunks) != len(embeddings):
            raise ValueError("chunks and embeddings must have the same length")
        if not chunks:
            return
        with translate_redis_errors("vector upsert"):
            last = int(self._redis.incrby(f"{self._prefix}:seq", len(chunks)))
            first = last - len(chunks) + 1
            pipe = self._redis.pipeline(transaction=True)
            for offset, (chunk, embedding) in enumerate(zip(chunks, embeddings, strict=True)):
                record = {**asdict(chunk), "embedding": list(embedding)}
                pipe.hset(self.chunks_key, chunk.chunk_id, json.dumps(record, ensure_ascii=False))
                # nx keeps the first position of a re-upserted chunk.
                pipe.zadd(self.order_key, {chunk.chunk_id: first + offset}, nx=True)
                pipe.sadd(self.doc_key(chunk.doc_id), chunk.chunk_id)
            pipe.execute()

    def delete_document(self, doc_id: str) -> None:
        with translate_redis_errors("vector delete"):
            chunk_ids = list(self._redis.smembers(self.doc_key(doc_id)))
            if not chunk_ids:
                return
            pipe = self._redis.pipeline(transaction=True)
            pipe.hdel(self.chunks_key, *chunk_ids)
            pipe.zrem(self.order_key, *chunk_ids)
            pipe.delete(self.doc_key(doc_id))
            pipe.execute()

    def search(self, query_embedding: list[float], top_k: int) -> list[SearchResult]:
        if top_k <= 0:
            return []
        with translate_redis_errors("vector search"):
            chunk_ids = self._redis.zrange(self.order_key, 0, -1)
            if not chunk_ids:
                return []
            raw_records = self._redis.hmget(self.chunks_key, chunk_ids)

        scored: list[SearchResult] = []
        for raw in raw_records:
            # Deleted between the two reads.
            if raw is None:
                continue
            record = json.loads(raw)
            embedding = tuple(record.pop("embedding"))
            scored.append(
                SearchResult(
                    chunk=DocumentChunk(**record),
                    score=_cosine_similarity(query_embedding, embedding),
                )
            )
        ranked = sorted(scored, key=lambda item: item.score, reverse=True)
        return ranked[:top_k]
