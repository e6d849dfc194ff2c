"""
Health check and system status API routes.
"""
import logging
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
from starlette.concurrency import run_in_threadpool

from ...core.database import check_connection
from ..dependencies import get_container

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "RAG Knowledge Base API"
    }


@router.get("/detailed")
async def detailed_health_check(request: Request):
    """Detailed health check including all system components."""
    services = get_container(request)

    db_healthy = await run_in_threadpool(check_connection, services.session_factory)
    vector_healthy = await run_in_threadpool(services.vector_store.health_check)
    llm_healthy = await services.llm_service.health_check()

    overall_healthy = db_healthy and vector_healthy and llm_healthy

    health_status = {
        "status": "ok" if overall_healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "database": "connected" if db_healthy else "disconnected",
            "vector_store": "connected" if vector_healthy else "disconnected",
            "llm": "connected" if llm_healthy else "disconnected",
        },
        "cache": services.cache.stats(),
        "ingestion_queue": {
            "workers": services.ingestion_queue.workers,
            "pending": services.ingestion_queue.pending(),
        },
        "status_subscribers": services.status_tracker.subscriber_count,
    }

    if not overall_healthy:
        logger.warning(f"Health check degraded: {health_status['services']}")
        return JSONResponse(status_code=503, content=health_status)

    return health_status
