"""
Pydantic schemas for document-related API endpoints.
"""
from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, ConfigDict
from enum import Enum


class ProcessingStatus(str, Enum):
    """Document processing status enumeration."""
    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


class DocumentResponse(BaseModel):
    """Schema for document API responses."""
    id: str
    filename: str
    file_type: str
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    status: ProcessingStatus
    error_message: Optional[str] = None
    chunk_count: int = 0
    metadata_json: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DocumentListResponse(BaseModel):
    """Schema for paginated document list responses."""
    documents: List[DocumentResponse]
    total: int
    limit: int
    offset: int


class DocumentUploadResponse(BaseModel):
    """Schema for document upload responses."""
    document_id: str
    status: ProcessingStatus
    message: str


class DocumentProcessingResponse(BaseModel):
    """Schema for document processing status responses."""
    document_id: str
    status: ProcessingStatus
    progress: Optional[float] = None  # 0.0 to 1.0
    message: Optional[str] = None
    chunk_count: Optional[int] = None


class ParsedDocument(BaseModel):
    """Text extracted from an uploaded file."""
    id: str
    filename: str
    content: str
    # PDF text per page, in page order; empty for formats without pages
    pages: List[str] = []
    metadata: Dict[str, Any] = {}


class DocumentChunk(BaseModel):
    """A chunk produced by the splitter, before it is persisted."""
    id: str
    content: str
    metadata: Dict[str, Any]

    @property
    def chunk_index(self) -> int:
        return self.metadata["chunk_index"]

    @property
    def page(self) -> Optional[int]:
        return self.metadata.get("page")


class IngestionResult(BaseModel):
    """Outcome of one ingestion run."""
    document_id: str
    chunks_created: int = 0
    status: str  # success, failed
    error: Optional[str] = None
