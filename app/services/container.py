"""
Explicit construction and lifecycle of the application's services.
"""
import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from ..core.config import Settings
from .document_processor import DocumentProcessor
from .file_storage import FileStorage
from .generation import GenerationService
from .ingestion import IngestionService
from .ingestion_queue import IngestionQueue
from .llm_service import LLMService
from .query_cache import QueryCache
from .retrieval import RetrievalService
from .status_tracker import StatusTracker
from .vector_store import VectorStoreService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything the routes need, built once per process."""

    session_factory: Callable[[], Session]
    cache: QueryCache
    status_tracker: StatusTracker
    vector_store: VectorStoreService
    llm_service: LLMService
    retrieval: RetrievalService
    generation: GenerationService
    ingestion: IngestionService
    ingestion_queue: IngestionQueue

    @classmethod
    def build(
        cls,
        settings: Settings,
        session_factory: Callable[[], Session],
        vector_store: VectorStoreService = None,
        llm_service: LLMService = None,
    ) -> "ServiceContainer":
        """Wire the services; the external collaborators may be injected."""
        vector_store = vector_store or VectorStoreService.from_settings(settings)
        llm_service = llm_service or LLMService.from_settings(settings)
        cache = QueryCache(max_size=settings.cache_max_size, ttl=settings.cache_ttl)
        status_tracker = StatusTracker(
            max_events=settings.status_max_events,
            subscriber_queue_size=settings.status_subscriber_queue_size,
        )
        retrieval = RetrievalService(vector_store)
        generation = GenerationService(cache, retrieval, llm_service, status_tracker, session_factory)
        ingestion = IngestionService(
            session_factory=session_factory,
            processor=DocumentProcessor(settings.chunk_size, settings.chunk_overlap),
            vector_store=vector_store,
            file_storage=FileStorage(settings.upload_dir),
            status_tracker=status_tracker,
            max_file_size=settings.max_file_size,
            allowed_extensions=settings.allowed_extensions,
        )
        return cls(
            session_factory=session_factory,
            cache=cache,
            status_tracker=status_tracker,
            vector_store=vector_store,
            llm_service=llm_service,
            retrieval=retrieval,
            generation=generation,
            ingestion=ingestion,
            ingestion_queue=IngestionQueue(ingestion, workers=settings.ingestion_workers),
        )

    def start(self) -> None:
        self.ingestion_queue.start()
        self.status_tracker.emit("system", "system", "started", message="Services started")
        logger.info("Services started")

    async def stop(self) -> None:
        await self.ingestion_queue.stop()
        self.cache.clear()
        logger.info("Services stopped")
