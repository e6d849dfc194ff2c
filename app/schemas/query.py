"""
Pydantic schemas for retrieval and question answering.
"""
from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator


class RetrievalResult(BaseModel):
    """One scored chunk returned by the retrieval step."""
    content: str
    score: float = 1.0
    metadata: Dict[str, Any]

    @property
    def source(self) -> str:
        return self.metadata.get("source", "unknown")

    @property
    def page(self) -> Optional[int]:
        return self.metadata.get("page")


class RetrievalOutcome(BaseModel):
    """Retrieved chunks plus whether the metadata filter had to be dropped."""
    results: List[RetrievalResult] = []
    filter_fallback: bool = False


class Citation(BaseModel):
    """A chunk that contributed to an answer."""
    source: str
    page: Optional[int] = None
    chunk_index: int
    content: str


class GenerationOptions(BaseModel):
    """Per-request knobs for the generation pipeline."""
    top_k: int = Field(5, ge=1, le=20)
    temperature: float = Field(0.7, ge=0, le=2)
    max_tokens: Optional[int] = Field(None, ge=1)
    filter: Optional[Dict[str, Any]] = None
    min_score: float = Field(0.0, ge=0, le=1)
    use_cache: bool = True

    @field_validator("filter", mode="before")
    def drop_empty_filter(cls, v):
        # an empty mapping means "no constraint" and is never sent to the index
        if isinstance(v, dict) and not v:
            return None
        return v

    def cache_options(self) -> Dict[str, Any]:
        """The option set that participates in the cache key."""
        return self.model_dump(exclude={"use_cache"})


class GenerationResult(BaseModel):
    """Answer returned by the generation pipeline."""
    answer: str
    citations: List[Citation] = []
    sources: List[str] = []
    metadata: Dict[str, Any] = {}


class QueryRequest(BaseModel):
    """Schema for question answering requests."""
    query: str = Field(..., min_length=1)
    top_k: Optional[int] = Field(None, ge=1, le=20)
    use_cache: bool = True
    temperature: Optional[float] = Field(None, ge=0, le=2)
    max_tokens: Optional[int] = Field(None, ge=1)
    min_score: Optional[float] = Field(None, ge=0, le=1)
    filter: Optional[Dict[str, Any]] = None

    @field_validator("query")
    def query_not_blank(cls, v):
        if not v.strip():
            raise ValueError("Query cannot be empty")
        return v


class QueryLogResponse(BaseModel):
    """Schema for a query history row."""
    id: str
    query_text: str
    response_time_ms: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class QueryHistoryResponse(BaseModel):
    queries: List[QueryLogResponse]


class CacheStatsResponse(BaseModel):
    size: int
    max_size: int
    ttl: float


class SearchResponse(BaseModel):
    """Schema for semantic search responses."""
    query: str
    results: List[RetrievalResult]
    total_results: int
    filter_fallback: bool = False
