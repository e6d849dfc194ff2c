"""
API routes for progress events: snapshot lookups and a Server-Sent Events stream.
"""
import asyncio
import json
import logging
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from ...core.exceptions import NotFoundError
from ...schemas.status import StatusEvent
from ...services.status_tracker import StatusTracker
from ..dependencies import get_status_tracker

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/status", tags=["status"])

HEARTBEAT_SECONDS = 30


def sse_data(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def event_stream(request: Request, tracker: StatusTracker, heartbeat: float = HEARTBEAT_SECONDS):
    """Yield recent events, then live ones, until the client goes away."""
    subscription = tracker.subscribe()
    try:
        yield sse_data({"type": "connected", "message": "Connected to status stream"})
        for event in reversed(tracker.get_recent_events(20)):
            yield sse_data(event.model_dump())

        while not subscription.closed:
            if await request.is_disconnected():
                break
            event = await subscription.get(timeout=heartbeat)
            if event is None:
                yield ": heartbeat\n\n"
            else:
                yield sse_data(event.model_dump())
    except asyncio.CancelledError:
        logger.info("SSE connection cancelled")
        raise
    finally:
        subscription.close()
        logger.info("SSE connection closed")


@router.get("/stream")
async def stream_status(request: Request, tracker: StatusTracker = Depends(get_status_tracker)):
    """Server-Sent Events endpoint for real-time status updates."""
    logger.info(f"SSE connection established from {request.client.host if request.client else 'unknown'}")
    return StreamingResponse(
        event_stream(request, tracker),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("")
async def get_recent_status_events(
    limit: int = Query(50, ge=1, le=500),
    tracker: StatusTracker = Depends(get_status_tracker),
):
    return {"events": tracker.get_recent_events(limit)}


@router.get("/{event_id}", response_model=StatusEvent)
async def get_status(event_id: str, tracker: StatusTracker = Depends(get_status_tracker)):
    event = tracker.get_status(event_id)
    if event is None:
        raise NotFoundError("Status")
    return event
