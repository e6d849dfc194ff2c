"""
API routes for question answering, query history and the answer cache.
"""
import logging
from fastapi import APIRouter, Depends, Query, Request
from starlette.concurrency import run_in_threadpool

from ...models.query import QueryLog
from ...schemas.query import (
    CacheStatsResponse,
    GenerationOptions,
    GenerationResult,
    QueryHistoryResponse,
    QueryLogResponse,
    QueryRequest,
)
from ...services.generation import GenerationService
from ...services.query_cache import QueryCache
from ..dependencies import get_container, get_generation_service, get_query_cache

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/query", tags=["query"])


@router.post("", response_model=GenerationResult)
async def query_knowledge_base(
    query_request: QueryRequest,
    generation: GenerationService = Depends(get_generation_service),
):
    """
    Answer a question from the uploaded documents.

    - **query**: The question
    - **top_k**: Number of chunks to retrieve (1-20)
    - **use_cache**: Reuse a cached answer for identical requests
    - **temperature**: Response creativity (0.0-2.0)
    - **max_tokens**: Maximum tokens for the answer
    - **min_score**: Drop chunks scoring below this
    - **filter**: Metadata filter, e.g. {"source": "notes.txt"}
    """
    overrides = query_request.model_dump(
        include={"top_k", "temperature", "max_tokens", "min_score", "filter", "use_cache"},
        exclude_none=True,
    )
    options = GenerationOptions(**overrides)

    logger.info(f"Processing query (top_k={options.top_k}, use_cache={options.use_cache})")
    return await generation.generate_answer(query_request.query, options)


@router.get("/history", response_model=QueryHistoryResponse)
async def get_query_history(
    request: Request,
    limit: int = Query(20, ge=1, le=200),
):
    """Most recent answered questions first."""
    session_factory = get_container(request).session_factory

    def load():
        with session_factory() as db:
            return db.query(QueryLog).order_by(QueryLog.created_at.desc()).limit(limit).all()

    queries = await run_in_threadpool(load)
    return QueryHistoryResponse(queries=[QueryLogResponse.model_validate(q) for q in queries])


@router.get("/cache/stats", response_model=CacheStatsResponse)
async def get_cache_stats(cache: QueryCache = Depends(get_query_cache)):
    return cache.stats()


@router.delete("/cache")
async def clear_cache(cache: QueryCache = Depends(get_query_cache)):
    cache.clear()
    return {"success": True, "message": "Cache cleared"}
