"""
Background ingestion on a bounded pool of asyncio workers.
"""
import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from ..schemas.document import IngestionResult
from .ingestion import IngestionService

logger = logging.getLogger(__name__)


class IngestionQueue:
    """
    Work queue feeding the ingestion pipeline.

    Each submission gets a future resolved with its IngestionResult, so
    callers may await it or ignore it. A document id is accepted at most
    once while it is queued or running.
    """

    def __init__(self, ingestion_service: IngestionService, workers: int = 2):
        self.ingestion_service = ingestion_service
        self.workers = max(1, workers)
        self._queue: Optional[asyncio.Queue] = None
        self._tasks: List[asyncio.Task] = []
        self._in_flight: Dict[str, asyncio.Future] = {}

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._tasks = [
            asyncio.create_task(self._worker(n), name=f"ingestion-worker-{n}")
            for n in range(self.workers)
        ]
        logger.info(f"Ingestion queue started with {self.workers} workers")

    async def stop(self) -> None:
        """Cancel the workers; queued submissions are abandoned."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        for future in self._in_flight.values():
            if not future.done():
                future.cancel()
        self._in_flight.clear()
        logger.info("Ingestion queue stopped")

    def submit(self, document_id: str) -> asyncio.Future:
        """
        Queue a document for ingestion.

        Raises:
            RuntimeError: the queue has not been started
        """
        if not self.running:
            raise RuntimeError("Ingestion queue is not running")

        existing = self._in_flight.get(document_id)
        if existing is not None and not existing.done():
            logger.info(f"Document {document_id} is already queued for ingestion")
            return existing

        future = asyncio.get_running_loop().create_future()
        self._in_flight[document_id] = future
        self._queue.put_nowait((document_id, future))
        logger.info(f"Document {document_id} queued for ingestion ({self.pending()} pending)")
        return future

    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def is_queued(self, document_id: str) -> bool:
        future = self._in_flight.get(document_id)
        return future is not None and not future.done()

    async def join(self) -> None:
        """Wait until every queued submission has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def _worker(self, n: int) -> None:
        while True:
            item: Tuple[str, asyncio.Future] = await self._queue.get()
            document_id, future = item
            try:
                result = await self.ingestion_service.ingest_document(document_id)
                if result.status != "success":
                    logger.error(f"Background ingestion failed for {document_id}: {result.error}")
                if not future.done():
                    future.set_result(result)
            except asyncio.CancelledError:
                if not future.done():
                    future.cancel()
                raise
            except Exception as e:
                logger.exception(f"Ingestion worker {n} crashed on {document_id}")
                if not future.done():
                    future.set_result(IngestionResult(document_id=document_id, status="failed", error=str(e)))
            finally:
                if self._in_flight.get(document_id) is future:
                    del self._in_flight[document_id]
                self._queue.task_done()
