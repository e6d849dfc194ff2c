"""
Publish/subscribe broadcaster of progress events for documents and queries.
"""
import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, List, Optional

from ..schemas.status import StatusEvent

logger = logging.getLogger(__name__)


_CLOSED = object()


class Subscription:
    """A subscriber's buffered view of the event stream."""

    def __init__(self, tracker: "StatusTracker", queue_size: int):
        self._tracker = tracker
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self) -> StatusEvent:
        if self.closed and self.queue.empty():
            raise StopAsyncIteration
        event = await self.queue.get()
        if event is _CLOSED:
            raise StopAsyncIteration
        return event

    async def get(self, timeout: Optional[float] = None) -> Optional[StatusEvent]:
        """Next event, or None on timeout or once the subscription is closed."""
        if self.closed and self.queue.empty():
            return None
        try:
            event = await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None
        return None if event is _CLOSED else event

    def close(self) -> None:
        self._tracker.unsubscribe(self)

    def _wake(self) -> None:
        # a consumer blocked in get() must see the close; make room if full
        if self.queue.full():
            self.queue.get_nowait()
        self.queue.put_nowait(_CLOSED)


class StatusTracker:
    """
    Keeps the latest event per id and fans every event out to subscribers.

    Delivery never blocks the emitter: each subscriber owns a bounded queue,
    and a subscriber whose queue is full is dropped.
    """

    def __init__(self, max_events: int = 100, subscriber_queue_size: int = 100):
        self.max_events = max_events
        self.subscriber_queue_size = subscriber_queue_size
        self._events: "OrderedDict[str, StatusEvent]" = OrderedDict()
        self._subscribers: List[Subscription] = []

    def emit(
        self,
        type: str,
        id: str,
        status: str,
        message: Optional[str] = None,
        progress: Optional[int] = None,
        data: Optional[Any] = None,
    ) -> Optional[StatusEvent]:
        """Record and broadcast an event. Failures are logged, never raised."""
        try:
            event = StatusEvent(
                type=type,
                id=id,
                status=status,
                message=message,
                progress=progress,
                data=data,
                timestamp=datetime.now(timezone.utc).isoformat(),
            )
        except Exception as e:
            logger.error(f"Dropping malformed status event for {id}: {str(e)}")
            return None

        self._events.pop(id, None)
        self._events[id] = event
        while len(self._events) > self.max_events:
            self._events.popitem(last=False)

        for subscriber in list(self._subscribers):
            try:
                subscriber.queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("Status subscriber is not keeping up; dropping it")
                self.unsubscribe(subscriber)
            except Exception as e:
                logger.error(f"Status delivery failed: {str(e)}")
                self.unsubscribe(subscriber)

        logger.debug(f"Status event emitted: {type} {id} {status}")
        return event

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self.subscriber_queue_size)
        self._subscribers.append(subscription)
        logger.info(f"Status subscriber added ({len(self._subscribers)} active)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.closed = True
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
            subscription._wake()
            logger.info(f"Status subscriber removed ({len(self._subscribers)} active)")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def get_status(self, id: str) -> Optional[StatusEvent]:
        return self._events.get(id)

    def get_recent_events(self, limit: int = 50) -> List[StatusEvent]:
        """Most recent events first."""
        # the table is kept in emission order, latest last
        return list(reversed(self._events.values()))[:limit]

    def clear_old_events(self, keep: int = 100) -> None:
        """Keep only the `keep` most recent events."""
        recent = self.get_recent_events(keep)
        self._events.clear()
        for event in reversed(recent):
            self._events[event.id] = event
