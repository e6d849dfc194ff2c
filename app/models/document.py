"""
Document and chunk models for uploaded files and their indexed slices.
"""
import uuid

from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..core.database import Base


def generate_id() -> str:
    return uuid.uuid4().hex


class Document(Base):
    """Document model for storing file metadata and processing status."""

    __tablename__ = "documents"

    id = Column(String(32), primary_key=True, default=generate_id)
    filename = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False, default="")
    file_type = Column(String(50), nullable=False)
    mime_type = Column(String(100), nullable=True)
    file_size = Column(Integer, nullable=True)

    # Processing status
    status = Column(String(20), nullable=False, default="pending")  # pending, processing, processed, failed
    error_message = Column(Text, nullable=True)
    chunk_count = Column(Integer, default=0)
    metadata_json = Column(Text, nullable=True)

    # Timestamps
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    chunks = relationship(
        "Chunk",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Chunk.chunk_index",
    )

    __table_args__ = (Index("idx_documents_status", "status"),)

    def __repr__(self):
        return f"<Document(id={self.id}, filename='{self.filename}', status='{self.status}')>"


class Chunk(Base):
    """A contiguous slice of a document's text."""

    __tablename__ = "chunks"

    id = Column(String(32), primary_key=True, default=generate_id)
    document_id = Column(String(32), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    chunk_index = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    page_number = Column(Integer, nullable=True)
    metadata_json = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    document = relationship("Document", back_populates="chunks")

    __table_args__ = (Index("idx_chunks_document_id", "document_id"),)

    def __repr__(self):
        return f"<Chunk(id={self.id}, document_id={self.document_id}, index={self.chunk_index})>"
