"""
Ingestion pipeline: turns an uploaded file into persisted, indexed chunks,
and owns the document lifecycle (create, list, delete, reindex).
"""
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from langchain_core.documents import Document as LCDocument
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..core.exceptions import DatabaseError, FileProcessingError, NotFoundError, ValidationError
from ..models.document import Chunk, Document, generate_id
from ..schemas.document import DocumentChunk, IngestionResult, ProcessingStatus
from .document_processor import DocumentProcessor
from .file_storage import FileStorage
from .status_tracker import StatusTracker
from .vector_store import VectorStoreService

logger = logging.getLogger(__name__)


class IngestionService:
    """Service that owns documents from upload to deletion."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        processor: DocumentProcessor,
        vector_store: VectorStoreService,
        file_storage: FileStorage,
        status_tracker: StatusTracker,
        max_file_size: int,
        allowed_extensions: Optional[List[str]] = None,
    ):
        self.session_factory = session_factory
        self.processor = processor
        self.vector_store = vector_store
        self.file_storage = file_storage
        self.status_tracker = status_tracker
        self.max_file_size = max_file_size
        self.allowed_extensions = allowed_extensions or processor.get_supported_file_types()

    # Upload

    def validate_upload(self, filename: str, file_size: int) -> None:
        """
        Raises:
            ValidationError: empty, too large, or unsupported file
        """
        if not filename:
            raise ValidationError("No file provided")
        extension = Path(filename).suffix.lower()
        if extension not in self.allowed_extensions or not self.processor.validate_file_type(filename):
            raise ValidationError(
                f"File type not supported: {extension or filename}. "
                f"Supported types: {', '.join(self.allowed_extensions)}"
            )
        if file_size == 0:
            raise ValidationError("Uploaded file is empty")
        if file_size > self.max_file_size:
            raise ValidationError(f"File size exceeds maximum of {self.max_file_size} bytes")

    async def create_document(self, filename: str, content: bytes, mime_type: Optional[str] = None) -> Document:
        """Validate an upload, record it as pending and store the file."""
        self.validate_upload(filename, len(content))
        document_id = generate_id()

        def insert():
            with self.session_factory() as db:
                document = Document(
                    id=document_id,
                    filename=filename,
                    file_type=Path(filename).suffix.lower(),
                    mime_type=mime_type,
                    file_size=len(content),
                    status=ProcessingStatus.PENDING.value,
                )
                db.add(document)
                db.commit()

        try:
            await run_in_threadpool(insert)
        except Exception as e:
            logger.error(f"Failed to create document record: {str(e)}")
            raise DatabaseError("Failed to create document record") from e

        try:
            file_path = await self.file_storage.save(content, document_id, filename)
        except FileProcessingError:
            await run_in_threadpool(self._delete_row, document_id)
            raise

        document = await run_in_threadpool(self._update_document, document_id, file_path=file_path)
        logger.info(f"Document record created: {document_id} - {filename}")
        self.status_tracker.emit("document", document_id, "pending", message="Document uploaded", progress=0)
        return document

    # Pipeline

    async def ingest_document(self, document_id: str) -> IngestionResult:
        """
        Parse, chunk, persist and index one document.

        Never raises: failures mark the document failed and are reported
        in the returned result. Only a pending document is ingested; any
        other status is left untouched.
        """
        start_time = time.monotonic()
        chunks: List[DocumentChunk] = []

        try:
            document = await run_in_threadpool(self._claim_pending, document_id)
            if document is None:
                logger.warning(f"Skipping ingestion of {document_id}: document is not pending")
                return IngestionResult(document_id=document_id, status="failed", error="Document is not pending")
            self._emit(document_id, "processing", "Parsing document", 10)

            logger.info(f"Step 1: Parsing document {document_id} ({document.filename})")
            parsed = await run_in_threadpool(
                self.processor.parse_document, document.file_path, document.filename, document_id
            )

            logger.info(f"Step 2: Chunking document {document_id}")
            self._emit(document_id, "chunking", "Splitting document into chunks", 30)
            chunks = await run_in_threadpool(self.processor.chunk_document, parsed, document_id)
            if not chunks:
                raise FileProcessingError("No chunks created from document")

            logger.info(f"Step 3: Storing {len(chunks)} chunks for document {document_id}")
            self._emit(document_id, "storing", f"Storing {len(chunks)} chunks", 50)
            await run_in_threadpool(self._insert_chunks, document_id, chunks, parsed.metadata)

            logger.info(f"Step 4: Creating embeddings for document {document_id}")
            self._emit(document_id, "embedding", "Creating embeddings", 70)
            await self.vector_store.add_documents(
                [LCDocument(page_content=c.content, metadata=c.metadata) for c in chunks],
                ids=[c.id for c in chunks],
            )

            await run_in_threadpool(
                self._update_document,
                document_id,
                status=ProcessingStatus.PROCESSED.value,
                chunk_count=len(chunks),
                processed_at=datetime.now(timezone.utc),
            )
        except Exception as e:
            error_message = getattr(e, "message", None) or str(e)
            logger.error(f"Document ingestion failed for {document_id}: {type(e).__name__}: {error_message}")
            await self._mark_failed(document_id, chunks, error_message)
            return IngestionResult(document_id=document_id, status="failed", error=error_message)

        duration = round((time.monotonic() - start_time) * 1000)
        logger.info(f"Document ingestion completed: {document_id} ({len(chunks)} chunks, {duration}ms)")
        self._emit(
            document_id,
            "processed",
            "Document processed successfully",
            100,
            data={"chunks_created": len(chunks), "duration_ms": duration},
        )
        return IngestionResult(document_id=document_id, chunks_created=len(chunks), status="success")

    async def _mark_failed(self, document_id: str, chunks: List[DocumentChunk], error_message: str) -> None:
        # drop anything a partial run left behind; the document row stays as the failure record
        if chunks:
            try:
                await self.vector_store.delete([c.id for c in chunks])
            except Exception as e:
                logger.warning(f"Could not remove partial vectors for {document_id}: {str(e)}")
        try:
            await run_in_threadpool(self._delete_chunk_rows, document_id)
            await run_in_threadpool(
                self._update_document,
                document_id,
                status=ProcessingStatus.FAILED.value,
                error_message=error_message,
                chunk_count=0,
            )
        except Exception as e:
            logger.error(f"Could not mark document {document_id} as failed: {str(e)}")
        self._emit(document_id, "failed", error_message, 0)

    # Lifecycle

    async def delete_document(self, document_id: str) -> int:
        """
        Delete vectors, then the stored file, then the row (chunks cascade).

        Vectors go first so an interrupted delete leaves orphan vectors
        rather than rows pointing at live vectors.

        Returns:
            int: number of chunks removed
        """
        document = await self.get_document(document_id)
        chunk_ids = await run_in_threadpool(self._chunk_ids, document_id)

        await self.vector_store.delete(chunk_ids)
        await self.file_storage.delete(document.file_path)
        await run_in_threadpool(self._delete_row, document_id)

        logger.info(f"Document deleted: {document_id} ({len(chunk_ids)} chunks)")
        self._emit(document_id, "deleted", "Document deleted", 100)
        return len(chunk_ids)

    async def reset_for_reindex(self, document_id: str) -> Document:
        """Remove existing chunks and vectors and put the document back to pending."""
        await self.get_document(document_id)
        chunk_ids = await run_in_threadpool(self._chunk_ids, document_id)
        await self.vector_store.delete(chunk_ids)
        await run_in_threadpool(self._delete_chunk_rows, document_id)
        document = await run_in_threadpool(
            self._update_document,
            document_id,
            status=ProcessingStatus.PENDING.value,
            error_message=None,
            chunk_count=0,
            processed_at=None,
        )
        self._emit(document_id, "pending", "Document queued for reindexing", 0)
        return document

    async def get_document(self, document_id: str) -> Document:
        """
        Raises:
            NotFoundError: no document with this id
        """
        document = await run_in_threadpool(self._load_document, document_id)
        if document is None:
            raise NotFoundError("Document")
        return document

    async def list_documents(
        self,
        status: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[Document], int]:
        def query():
            with self.session_factory() as db:
                q = db.query(Document)
                if status:
                    q = q.filter(Document.status == status)
                total = q.count()
                documents = q.order_by(Document.uploaded_at.desc()).offset(offset).limit(limit).all()
                return documents, total

        return await run_in_threadpool(query)

    async def get_chunks(self, document_id: str) -> List[Chunk]:
        def query():
            with self.session_factory() as db:
                return (
                    db.query(Chunk)
                    .filter(Chunk.document_id == document_id)
                    .order_by(Chunk.chunk_index)
                    .all()
                )

        return await run_in_threadpool(query)

    # Synchronous helpers, run in the threadpool

    def _load_document(self, document_id: str) -> Optional[Document]:
        with self.session_factory() as db:
            return db.get(Document, document_id)

    def _update_document(self, document_id: str, **fields) -> Document:
        with self.session_factory() as db:
            document = db.get(Document, document_id)
            if document is None:
                raise NotFoundError("Document")
            for field, value in fields.items():
                setattr(document, field, value)
            db.commit()
            db.refresh(document)
            db.expunge(document)
            return document

    def _claim_pending(self, document_id: str) -> Optional[Document]:
        """
        Move a pending document to processing in one conditional UPDATE.

        Returns None when the document exists but is not pending.

        Raises:
            NotFoundError: no document with this id
        """
        with self.session_factory() as db:
            claimed = (
                db.query(Document)
                .filter(Document.id == document_id, Document.status == ProcessingStatus.PENDING.value)
                .update(
                    {"status": ProcessingStatus.PROCESSING.value, "error_message": None},
                    synchronize_session=False,
                )
            )
            db.commit()
            document = db.get(Document, document_id)
            if document is None:
                raise NotFoundError("Document")
            if not claimed:
                return None
            db.expunge(document)
            return document

    def _insert_chunks(self, document_id: str, chunks: List[DocumentChunk], document_metadata: dict) -> None:
        """All chunk rows in one transaction."""
        with self.session_factory() as db:
            try:
                db.add_all([
                    Chunk(
                        id=chunk.id,
                        document_id=document_id,
                        chunk_index=chunk.chunk_index,
                        content=chunk.content,
                        page_number=chunk.page,
                        metadata_json=json.dumps(chunk.metadata),
                    )
                    for chunk in chunks
                ])
                document = db.get(Document, document_id)
                document.metadata_json = json.dumps(document_metadata, default=str)
                db.commit()
            except Exception as e:
                db.rollback()
                raise DatabaseError(f"Failed to store chunks: {str(e)}") from e

    def _chunk_ids(self, document_id: str) -> List[str]:
        with self.session_factory() as db:
            return [row.id for row in db.query(Chunk.id).filter(Chunk.document_id == document_id).all()]

    def _delete_chunk_rows(self, document_id: str) -> None:
        with self.session_factory() as db:
            db.query(Chunk).filter(Chunk.document_id == document_id).delete(synchronize_session=False)
            db.commit()

    def _delete_row(self, document_id: str) -> None:
        with self.session_factory() as db:
            document = db.get(Document, document_id)
            if document is not None:
                db.delete(document)
                db.commit()

    def _emit(self, document_id: str, status: str, message: str, progress: int, data=None) -> None:
        self.status_tracker.emit("document", document_id, status, message=message, progress=progress, data=data)
