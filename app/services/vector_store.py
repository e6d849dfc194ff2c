"""
Vector store service for managing embeddings and similarity search.
"""
import logging
from typing import List, Dict, Any, Optional, Tuple

# LangChain imports
from langchain_core.documents import Document
from langchain_core.vectorstores import VectorStore
from langchain_chroma import Chroma
from langchain_openai import OpenAIEmbeddings

from ..core.exceptions import VectorStoreError

logger = logging.getLogger(__name__)


class VectorStoreService:
    """Thin async facade over the Chroma collection holding chunk vectors."""

    def __init__(self, vector_store: VectorStore, collection_name: str = "documents"):
        self.vector_store = vector_store
        self.collection_name = collection_name

    @classmethod
    def from_settings(cls, settings) -> "VectorStoreService":
        """Open (or create) the persistent Chroma collection."""
        embeddings = OpenAIEmbeddings(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
        )
        vector_store = Chroma(
            persist_directory=settings.chroma_persist_directory,
            embedding_function=embeddings,
            collection_name=settings.chroma_collection_name,
        )
        logger.info(
            f"Vector store initialized with Chroma "
            f"(collection={settings.chroma_collection_name}, dir={settings.chroma_persist_directory})"
        )
        return cls(vector_store, settings.chroma_collection_name)

    async def add_documents(self, documents: List[Document], ids: List[str]) -> List[str]:
        """
        Embed and upsert documents under the given ids.

        Returns:
            List[str]: ids stored by the index
        """
        try:
            stored_ids = await self.vector_store.aadd_documents(documents, ids=ids)
        except Exception as e:
            logger.error(f"Error adding documents to vector store: {str(e)}")
            raise VectorStoreError(f"Failed to add documents: {str(e)}") from e

        logger.info(f"Added {len(stored_ids)} chunks to vector store")
        return stored_ids

    async def similarity_search(self, query: str, k: int = 5) -> List[Document]:
        """Nearest neighbours without a metadata filter."""
        results = await self.vector_store.asimilarity_search(query, k=k)
        logger.info(f"Similarity search returned {len(results)} results")
        return results

    async def similarity_search_with_score(
        self,
        query: str,
        k: int = 5,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[Tuple[Document, float]]:
        """
        Nearest neighbours with relevance scores.

        Chroma returns a distance (lower is better); it is converted to a
        similarity in (0, 1] as 1 / (1 + distance).
        """
        results = await self.vector_store.asimilarity_search_with_score(query, k=k, filter=filter)

        converted_results: List[Tuple[Document, float]] = []
        for doc, distance in results:
            try:
                sim = 1.0 / (1.0 + float(distance))
            except (TypeError, ValueError):
                sim = 0.0
            converted_results.append((doc, sim))

        logger.info(f"Filtered similarity search returned {len(converted_results)} results")
        return converted_results

    async def delete(self, ids: List[str]) -> None:
        """Delete vectors by chunk id."""
        if not ids:
            return
        try:
            await self.vector_store.adelete(ids=ids)
        except Exception as e:
            logger.error(f"Error deleting vectors: {str(e)}")
            raise VectorStoreError(f"Failed to delete vectors: {str(e)}") from e
        logger.info(f"Deleted {len(ids)} vectors from vector store")

    def count(self) -> int:
        return self.vector_store._collection.count()

    def get_collection_stats(self) -> Dict[str, Any]:
        """Get statistics about the vector store collection."""
        try:
            return {
                "total_chunks": self.count(),
                "collection_name": self.collection_name,
            }
        except Exception as e:
            logger.error(f"Error getting collection stats: {str(e)}")
            return {}

    def health_check(self) -> bool:
        """Check if vector store is healthy."""
        try:
            self.count()
            return True
        except Exception as e:
            logger.error(f"Vector store health check failed: {str(e)}")
            return False
