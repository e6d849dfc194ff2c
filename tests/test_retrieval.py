"""
Test cases for the retrieval step
"""
import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock
from langchain_core.documents import Document

from app.core.exceptions import VectorStoreError
from app.services.retrieval import RetrievalService, has_valid_filter


def doc(content, source="notes.txt", index=0, **extra):
    metadata = {"source": source, "chunk_index": index, "document_id": "doc-1"}
    metadata.update(extra)
    return Document(page_content=content, metadata=metadata)


@pytest.fixture
def store():
    store = MagicMock()
    store.similarity_search = AsyncMock(return_value=[doc("a"), doc("b", index=1)])
    store.similarity_search_with_score = AsyncMock(
        return_value=[(doc("a"), 0.9), (doc("b", index=1), 0.4)]
    )
    return store


class TestRetrievalService:
    def test_unfiltered_results_score_one(self, store):
        outcome = asyncio.run(RetrievalService(store).retrieve("what is rag", top_k=2))

        assert [r.content for r in outcome.results] == ["a", "b"]
        assert all(r.score == 1.0 for r in outcome.results)
        assert outcome.filter_fallback is False
        store.similarity_search.assert_awaited_once_with("what is rag", k=2)
        store.similarity_search_with_score.assert_not_called()

    def test_empty_filter_is_never_sent(self, store):
        asyncio.run(RetrievalService(store).retrieve("q", filter={}))

        store.similarity_search_with_score.assert_not_called()
        store.similarity_search.assert_awaited_once()

    def test_filtered_search_keeps_scores(self, store):
        outcome = asyncio.run(
            RetrievalService(store).retrieve("q", top_k=3, filter={"source": "notes.txt"})
        )

        assert [r.score for r in outcome.results] == [0.9, 0.4]
        assert outcome.filter_fallback is False
        store.similarity_search_with_score.assert_awaited_once_with("q", k=3, filter={"source": "notes.txt"})
        store.similarity_search.assert_not_called()

    def test_rejected_filter_falls_back_and_flags(self, store):
        store.similarity_search_with_score.side_effect = ValueError("Expected where to have exactly one operator")

        outcome = asyncio.run(RetrievalService(store).retrieve("q", filter={"bad": {"$nope": 1}}))

        assert outcome.filter_fallback is True
        assert [r.content for r in outcome.results] == ["a", "b"]
        assert all(r.score == 1.0 for r in outcome.results)

    def test_min_score_drops_weak_results(self, store):
        outcome = asyncio.run(
            RetrievalService(store).retrieve("q", filter={"source": "notes.txt"}, min_score=0.5)
        )
        assert [r.content for r in outcome.results] == ["a"]

    def test_zero_results(self, store):
        store.similarity_search.return_value = []

        outcome = asyncio.run(RetrievalService(store).retrieve("q"))

        assert outcome.results == []
        assert outcome.filter_fallback is False

    def test_missing_metadata_gets_defaults(self, store):
        store.similarity_search.return_value = [
            Document(page_content="orphan", metadata={}),
            Document(page_content="second orphan", metadata={"page": 2}),
        ]

        results = asyncio.run(RetrievalService(store).retrieve("q")).results

        assert results[0].source == "unknown"
        assert results[0].metadata["document_id"] == "unknown"
        assert results[0].metadata["chunk_index"] == 0
        assert results[1].metadata["chunk_index"] == 1
        assert results[1].page == 2

    def test_index_failure_raises_vector_store_error(self, store):
        store.similarity_search.side_effect = RuntimeError("connection refused")

        with pytest.raises(VectorStoreError, match="connection refused"):
            asyncio.run(RetrievalService(store).retrieve("q"))

    def test_fallback_failure_raises_vector_store_error(self, store):
        store.similarity_search_with_score.side_effect = ValueError("bad filter")
        store.similarity_search.side_effect = RuntimeError("down")

        with pytest.raises(VectorStoreError):
            asyncio.run(RetrievalService(store).retrieve("q", filter={"source": "x"}))


class TestFilterValidity:
    def test_has_valid_filter(self):
        assert has_valid_filter({"source": "a.txt"})
        assert not has_valid_filter({})
        assert not has_valid_filter(None)
        assert not has_valid_filter("source=a.txt")


class TestRetrievalAgainstIndex:
    """Runs against a real in-memory LangChain index."""

    def test_indexed_chunks_are_found(self, vector_store):
        chunks = [doc("Retrieval augmented generation", index=0), doc("Vector databases", index=1)]
        asyncio.run(vector_store.add_documents(chunks, ids=["c0", "c1"]))

        outcome = asyncio.run(RetrievalService(vector_store).retrieve("Retrieval augmented generation", top_k=1))

        assert len(outcome.results) == 1
        assert outcome.results[0].content == "Retrieval augmented generation"
        assert outcome.results[0].source == "notes.txt"

    def test_top_k_bounds_results(self, vector_store):
        chunks = [doc(f"chunk {i}", index=i) for i in range(6)]
        asyncio.run(vector_store.add_documents(chunks, ids=[f"c{i}" for i in range(6)]))

        outcome = asyncio.run(RetrievalService(vector_store).retrieve("chunk", top_k=4))

        assert len(outcome.results) == 4
