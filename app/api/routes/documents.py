"""
API routes for document management (upload, list, delete, processing status).
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from ...schemas.document import (
    DocumentResponse,
    DocumentListResponse,
    DocumentUploadResponse,
    DocumentProcessingResponse,
    ProcessingStatus,
)
from ...schemas.query import SearchResponse
from ...core.exceptions import AppError, ValidationError
from ...services.ingestion import IngestionService
from ...services.ingestion_queue import IngestionQueue
from ...services.retrieval import RetrievalService
from ..dependencies import get_ingestion_queue, get_ingestion_service, get_retrieval_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/documents", tags=["documents"])

STATUS_PROGRESS = {
    ProcessingStatus.PENDING: 0.0,
    ProcessingStatus.PROCESSING: 0.5,
    ProcessingStatus.PROCESSED: 1.0,
    ProcessingStatus.FAILED: 0.0,
}


def require_running(queue: IngestionQueue) -> None:
    """Raises AppError (503) while the ingestion workers are not running."""
    if not queue.running:
        raise AppError("Ingestion queue is not running", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


@router.post("/upload", response_model=DocumentUploadResponse, status_code=status.HTTP_202_ACCEPTED)
async def upload_document(
    file: UploadFile = File(...),
    ingestion: IngestionService = Depends(get_ingestion_service),
    queue: IngestionQueue = Depends(get_ingestion_queue),
):
    """
    Upload a document for processing.

    - **file**: Document file (PDF, MD, TXT)

    Returns immediately; poll the status endpoint for progress.
    """
    require_running(queue)
    file_content = await file.read()
    document = await ingestion.create_document(file.filename, file_content, file.content_type)

    queue.submit(document.id)
    logger.info(f"Document uploaded: {document.id} - {file.filename}")

    return DocumentUploadResponse(
        document_id=document.id,
        status=ProcessingStatus.PENDING,
        message="Document uploaded and processing started",
    )


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    status_filter: Optional[ProcessingStatus] = Query(None, alias="status"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    ingestion: IngestionService = Depends(get_ingestion_service),
):
    """
    Get paginated list of uploaded documents.

    - **status**: Filter by processing status
    - **limit**: Number of documents per page
    - **offset**: Number of documents to skip
    """
    documents, total = await ingestion.list_documents(
        status_filter.value if status_filter else None, limit, offset
    )
    return DocumentListResponse(
        documents=[DocumentResponse.model_validate(doc) for doc in documents],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/search/semantic", response_model=SearchResponse)
async def search_documents(
    query: str,
    max_results: int = Query(10, ge=1, le=50),
    min_score: float = Query(0.0, ge=0, le=1),
    retrieval: RetrievalService = Depends(get_retrieval_service),
):
    """
    Perform semantic search across documents.

    - **query**: Search query
    - **max_results**: Maximum number of results to return
    """
    if not query.strip():
        raise ValidationError("Search query cannot be empty")

    outcome = await retrieval.retrieve(query, top_k=max_results, min_score=min_score)
    return SearchResponse(
        query=query,
        results=outcome.results,
        total_results=len(outcome.results),
        filter_fallback=outcome.filter_fallback,
    )


@router.get("/{document_id}")
async def get_document(
    document_id: str,
    ingestion: IngestionService = Depends(get_ingestion_service),
):
    """Get document details by ID, with the number of stored chunks."""
    document = await ingestion.get_document(document_id)
    chunks = await ingestion.get_chunks(document_id)

    payload = DocumentResponse.model_validate(document).model_dump(mode="json")
    payload["chunks"] = len(chunks)
    return payload


@router.get("/{document_id}/status", response_model=DocumentProcessingResponse)
async def get_document_processing_status(
    document_id: str,
    ingestion: IngestionService = Depends(get_ingestion_service),
):
    """Get document processing status."""
    document = await ingestion.get_document(document_id)
    doc_status = ProcessingStatus(document.status)

    return DocumentProcessingResponse(
        document_id=document.id,
        status=doc_status,
        progress=STATUS_PROGRESS[doc_status],
        message=document.error_message if doc_status == ProcessingStatus.FAILED else None,
        chunk_count=document.chunk_count if doc_status == ProcessingStatus.PROCESSED else None,
    )


@router.delete("/{document_id}")
async def delete_document(
    document_id: str,
    ingestion: IngestionService = Depends(get_ingestion_service),
    queue: IngestionQueue = Depends(get_ingestion_queue),
):
    """Delete a document, its chunks, its vectors and its stored file."""
    if queue.is_queued(document_id):
        raise ValidationError("Document is still being processed")

    chunks_deleted = await ingestion.delete_document(document_id)
    logger.info(f"Document deleted: {document_id}")
    return {
        "success": True,
        "message": "Document deleted successfully",
        "chunks_deleted": chunks_deleted,
    }


@router.post("/{document_id}/reindex", response_model=DocumentUploadResponse, status_code=status.HTTP_202_ACCEPTED)
async def reindex_document(
    document_id: str,
    ingestion: IngestionService = Depends(get_ingestion_service),
    queue: IngestionQueue = Depends(get_ingestion_queue),
):
    """Drop a document's chunks and vectors and ingest it again."""
    if queue.is_queued(document_id):
        raise ValidationError("Document is already being processed")

    require_running(queue)
    await ingestion.reset_for_reindex(document_id)
    queue.submit(document_id)

    return DocumentUploadResponse(
        document_id=document_id,
        status=ProcessingStatus.PENDING,
        message="Document queued for reindexing",
    )
