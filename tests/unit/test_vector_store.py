from unittest.mock import MagicMock

import pytest
import redis

from queued_agent.errors import StorageUnavailable
from queued_agent.retrieval.vector_store import InMemoryVectorStore, RedisVectorStore
from queued_agent.types import DocumentChunk


def _chunk(chunk_id: str, doc_id: str = "doc") -> DocumentChunk:
    return DocumentChunk(chunk_id=chunk_id, doc_id=doc_id, text=f"text of {chunk_id}")


def test_search_on_empty_index_returns_nothing() -> None:
    store = InMemoryVectorStore()

    for top_k in (0, 1, 10):
        assert store.search([1.0, 0.0], top_k) == []


def test_results_sorted_by_score_and_bounded_by_top_k() -> None:
    store = InMemoryVectorStore()
    store.upsert(
        [_chunk("far"), _chunk("near"), _chunk("mid")],
        [[0.0, 1.0], [1.0, 0.0], [1.0, 1.0]],
    )

    results = store.search([1.0, 0.0], 2)

    assert [result.chunk.chunk_id for result in results] == ["near", "mid"]
    assert results[0].score >= results[1].score
    assert abs(results[0].score - 1.0) < 1e-9
    assert store.search([1.0, 0.0], 0) == []


def test_equal_scores_keep_insertion_order() -> None:
    store = InMemoryVectorStore()
    store.upsert([_chunk("a"), _chunk("b"), _chunk("c")], [[1.0, 0.0]] * 3)

    results = store.search([1.0, 0.0], 3)

    assert [result.chunk.chunk_id for result in results] == ["a", "b", "c"]


def test_reupsert_keeps_position_and_replaces_vector() -> None:
    store = InMemoryVectorStore()
    store.upsert([_chunk("a"), _chunk("b")], [[0.0, 1.0], [1.0, 0.0]])
    store.upsert([_chunk("a")], [[1.0, 0.0]])

    results = store.search([1.0, 0.0], 2)

    assert len(store) == 2
    assert [result.chunk.chunk_id for result in results] == ["a", "b"]


def test_delete_document_removes_its_chunks() -> None:
    store = InMemoryVectorStore()
    store.upsert([_chunk("a", "doc-1"), _chunk("b", "doc-2")], [[1.0, 0.0], [1.0, 0.0]])

    store.delete_document("doc-1")

    assert [result.chunk.chunk_id for result in store.search([1.0, 0.0], 5)] == ["b"]


def test_redis_store_ranks_and_keeps_insertion_order(shared_redis: MagicMock) -> None:
    store = RedisVectorStore(shared_redis, prefix="kb")
    store.upsert([_chunk("a"), _chunk("b"), _chunk("far")], [[1.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
    store.upsert([_chunk("a")], [[1.0, 0.0]])

    results = store.search([1.0, 0.0], 3)

    assert len(store) == 3
    assert [result.chunk.chunk_id for result in results] == ["a", "b", "far"]
    assert results[0].chunk.text == "text of a"
    assert store.search([1.0, 0.0], 0) == []


def test_redis_store_uses_prefixed_keys(shared_redis: MagicMock) -> None:
    store = RedisVectorStore(shared_redis, prefix="kb")

    store.upsert([_chunk("a", "doc-1")], [[1.0, 0.0]])

    assert shared_redis.hset.call_args.args[:2] == ("kb:chunks", "a")
    shared_redis.zadd.assert_called_once_with("kb:order", {"a": 1}, nx=True)
    shared_redis.sadd.assert_called_once_with("kb:doc:doc-1", "a")


def test_redis_store_delete_document(shared_redis: MagicMock) -> None:
    store = RedisVectorStore(shared_redis)
    store.upsert([_chunk("a", "doc-1"), _chunk("b", "doc-2")], [[1.0, 0.0], [1.0, 0.0]])

    store.delete_document("doc-1")
    store.delete_document("never-indexed")

    assert [result.chunk.chunk_id for result in store.search([1.0, 0.0], 5)] == ["b"]
    assert len(store) == 1


def test_redis_store_empty_index(shared_redis: MagicMock) -> None:
    assert RedisVectorStore(shared_redis).search([1.0, 0.0], 5) == []


def test_redis_store_errors_surface_as_storage_unavailable() -> None:
    client = MagicMock()
    client.zrange.side_effect = redis.exceptions.ResponseError("WRONGTYPE")

    with pytest.raises(StorageUnavailable):
        RedisVectorStore(client).search([1.0, 0.0], 3)
