"""
Retrieval step: similarity search with optional metadata filter.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from langchain_core.documents import Document

from ..core.exceptions import AppError, VectorStoreError
from ..schemas.query import RetrievalOutcome, RetrievalResult
from .vector_store import VectorStoreService

logger = logging.getLogger(__name__)


def has_valid_filter(filter: Any) -> bool:
    return isinstance(filter, dict) and len(filter) > 0


class RetrievalService:
    """Returns scored chunks for a question."""

    def __init__(self, vector_store: VectorStoreService):
        self.vector_store = vector_store

    async def retrieve(
        self,
        query: str,
        top_k: int = 5,
        filter: Optional[Dict[str, Any]] = None,
        min_score: float = 0.0,
    ) -> RetrievalOutcome:
        """
        Search the index for chunks relevant to query.

        A non-empty filter is tried first; if the index rejects it the
        search is repeated without it and the outcome is flagged with
        filter_fallback. An absent or empty filter is never sent to the
        index. min_score is applied here, after retrieval.

        Raises:
            VectorStoreError: the index could not be queried at all
        """
        logger.info(f"Retrieving documents (top_k={top_k}, filter={filter})")
        filter_fallback = False

        try:
            if has_valid_filter(filter):
                try:
                    scored = await self.vector_store.similarity_search_with_score(query, k=top_k, filter=filter)
                except Exception as e:
                    logger.warning(f"Filter search failed, falling back to regular search: {str(e)} (filter={filter})")
                    scored = await self._unfiltered(query, top_k)
                    filter_fallback = True
            else:
                scored = await self._unfiltered(query, top_k)
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Failed to retrieve documents: {str(e)}")
            raise VectorStoreError(f"Similarity search failed: {str(e)}") from e

        results = [self._to_result(doc, score, index) for index, (doc, score) in enumerate(scored)]

        if min_score > 0:
            results = [r for r in results if r.score >= min_score]

        logger.info(f"Documents retrieved: {len(results)} of {top_k} requested")
        return RetrievalOutcome(results=results, filter_fallback=filter_fallback)

    async def _unfiltered(self, query: str, top_k: int) -> List[Tuple[Document, float]]:
        # this access path returns no scores
        documents = await self.vector_store.similarity_search(query, k=top_k)
        return [(doc, 1.0) for doc in documents]

    @staticmethod
    def _to_result(doc: Document, score: Optional[float], position: int) -> RetrievalResult:
        metadata = dict(doc.metadata or {})
        metadata["source"] = metadata.get("source") or "unknown"
        metadata["document_id"] = metadata.get("document_id") or "unknown"
        if metadata.get("chunk_index") is None:
            metadata["chunk_index"] = position
        return RetrievalResult(
            content=doc.page_content,
            score=score if score is not None else 1.0,
            metadata=metadata,
        )
