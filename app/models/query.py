"""
Query log model for answered questions.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Index
from sqlalchemy.sql import func
from ..core.database import Base
from .document import generate_id


class QueryLog(Base):
    """One row per answered question."""

    __tablename__ = "queries"

    id = Column(String(32), primary_key=True, default=generate_id)
    query_text = Column(Text, nullable=False)
    response_time_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_queries_created_at", "created_at"),)

    def __repr__(self):
        return f"<QueryLog(id={self.id}, response_time_ms={self.response_time_ms})>"
