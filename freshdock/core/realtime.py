"""
In-process change feed for dispatch timelines.

Committed DispatchEvents are published here from worker threads; HTTP streams
subscribe per dispatch and consume events on the event loop, in publish order.
"""
import asyncio
import threading
import uuid
from typing import AsyncIterator, Dict, Iterable, List, Optional, Set

from loguru import logger

from freshdock.models.dispatch import DispatchEventRead


class Subscription:
    """
    One consumer of a dispatch's events. Events put before the consumer
    starts waiting are held and handed over when it binds to its loop.
    """

    def __init__(self, dispatch_id: uuid.UUID):
        self.id = uuid.uuid4()
        self.dispatch_id = dispatch_id
        self.closed = False
        self._lock = threading.Lock()
        self._pending: List[Optional[DispatchEventRead]] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional["asyncio.Queue[Optional[DispatchEventRead]]"] = None

    def put(self, event: Optional[DispatchEventRead]) -> None:
        """Thread-safe. ``None`` only wakes the consumer."""
        with self._lock:
            if self._loop is None:
                self._pending.append(event)
                return
            loop, queue = self._loop, self._queue
        try:
            loop.call_soon_threadsafe(queue.put_nowait, event)
        except RuntimeError:
            # The consumer's loop is gone
            logger.debug(f"Dropped event for closed stream {self.id}")

    def bind(self) -> "asyncio.Queue[Optional[DispatchEventRead]]":
        """Attaches the subscription to the running event loop."""
        queue: "asyncio.Queue[Optional[DispatchEventRead]]" = asyncio.Queue()
        with self._lock:
            for event in self._pending:
                queue.put_nowait(event)
            self._pending.clear()
            self._loop = asyncio.get_running_loop()
            self._queue = queue
        return queue

    async def get(self, timeout: Optional[float] = None) -> Optional[DispatchEventRead]:
        """Next event, or None when nothing arrived within the timeout."""
        queue = self._queue if self._queue is not None else self.bind()
        try:
            return await asyncio.wait_for(queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    def drain(self) -> List[DispatchEventRead]:
        """Events waiting to be consumed, without blocking."""
        with self._lock:
            if self._queue is None:
                events, self._pending = self._pending, []
                return [e for e in events if e is not None]
            queue = self._queue
        events = []
        while not queue.empty():
            event = queue.get_nowait()
            if event is not None:
                events.append(event)
        return events

    def close(self) -> None:
        self.closed = True
        self.put(None)


class DispatchEventBroker:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: Dict[uuid.UUID, Set[Subscription]] = {}

    def subscribe(self, dispatch_id: uuid.UUID) -> Subscription:
        subscription = Subscription(dispatch_id)
        with self._lock:
            self._subscriptions.setdefault(dispatch_id, set()).add(subscription)
        logger.debug(f"Subscribed {subscription.id} to dispatch {dispatch_id}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscriptions.get(subscription.dispatch_id)
            if subscribers is not None:
                subscribers.discard(subscription)
                if not subscribers:
                    del self._subscriptions[subscription.dispatch_id]
        subscription.close()

    def subscriber_count(self, dispatch_id: uuid.UUID) -> int:
        with self._lock:
            return len(self._subscriptions.get(dispatch_id, ()))

    def active_streams(self) -> int:
        with self._lock:
            return sum(len(subs) for subs in self._subscriptions.values())

    def publish(self, event: DispatchEventRead) -> None:
        with self._lock:
            # Publishing under the lock keeps per-dispatch order across threads
            for subscription in self._subscriptions.get(event.dispatch_id, ()):
                subscription.put(event)


def merge_events(
    existing: List[DispatchEventRead],
    incoming: Iterable[DispatchEventRead],
) -> List[DispatchEventRead]:
    """
    Appends incoming events after the existing ones, skipping any already seen.
    Existing entries are never replaced.
    """
    merged = list(existing)
    seen = {event.id for event in merged}
    for event in incoming:
        if event.id in seen:
            continue
        seen.add(event.id)
        merged.append(event)
    return merged


broker = DispatchEventBroker()


def format_sse(event: DispatchEventRead) -> str:
    return (
        f"id: {event.id}\n"
        f"event: {event.event_type.value}\n"
        f"data: {event.model_dump_json()}\n\n"
    )


async def sse_stream(
    subscription: Subscription,
    history: List[DispatchEventRead],
    keepalive_seconds: float = 15.0,
) -> AsyncIterator[str]:
    """
    Server-sent events for one dispatch: the stored timeline first, then live
    events as they are published. The subscription must be opened before the
    history is read so nothing committed in between is lost; anything seen
    twice is skipped.
    """
    try:
        seen = set()
        for event in merge_events([], history):
            seen.add(event.id)
            yield format_sse(event)

        while True:
            event = await subscription.get(timeout=keepalive_seconds)
            if event is None:
                if subscription.closed:
                    return
                yield ": keep-alive\n\n"
                continue
            if event.id in seen:
                continue
            seen.add(event.id)
            yield format_sse(event)
    finally:
        broker.unsubscribe(subscription)
