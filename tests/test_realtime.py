import asyncio
import json
import threading
import uuid
from datetime import datetime

from freshdock.core.realtime import (
    DispatchEventBroker, broker, format_sse, merge_events, sse_stream
)
from freshdock.db.schema import DispatchEventType
from freshdock.models.dispatch import DispatchEventRead


def make_event(dispatch_id, sequence, event_type=DispatchEventType.EDITED) -> DispatchEventRead:
    return DispatchEventRead(
        id=uuid.uuid4(),
        dispatch_id=dispatch_id,
        sequence=sequence,
        event_type=event_type,
        triggered_by_role="staff",
        details={"n": sequence},
        created_at=datetime(2026, 10, 19, 8, sequence),
    )


def test_publish_reaches_only_subscribers_of_that_dispatch():
    hub = DispatchEventBroker()
    watched, other = uuid.uuid4(), uuid.uuid4()
    subscription = hub.subscribe(watched)

    hub.publish(make_event(other, 1))
    hub.publish(make_event(watched, 1))
    hub.publish(make_event(watched, 2))

    assert [e.sequence for e in subscription.drain()] == [1, 2]
    assert hub.subscriber_count(watched) == 1

    hub.unsubscribe(subscription)
    assert subscription.closed
    assert hub.subscriber_count(watched) == 0
    assert hub.active_streams() == 0


def test_get_times_out_with_none():
    hub = DispatchEventBroker()
    subscription = hub.subscribe(uuid.uuid4())
    assert asyncio.run(subscription.get(timeout=0.01)) is None


def test_events_published_from_other_threads_reach_the_loop():
    hub = DispatchEventBroker()
    dispatch_id = uuid.uuid4()
    subscription = hub.subscribe(dispatch_id)

    async def consume():
        subscription.bind()
        worker = threading.Thread(target=hub.publish, args=(make_event(dispatch_id, 1),))
        worker.start()
        worker.join()
        return await subscription.get(timeout=1)

    event = asyncio.run(consume())
    assert event.sequence == 1


def test_merge_keeps_existing_and_skips_duplicates():
    dispatch_id = uuid.uuid4()
    first, second, third = (make_event(dispatch_id, n) for n in (1, 2, 3))

    merged = merge_events([first, second], [second, third, third])
    assert [e.sequence for e in merged] == [1, 2, 3]
    assert merged[0] is first


def test_format_sse():
    event = make_event(uuid.uuid4(), 4, DispatchEventType.ARRIVED)
    frame = format_sse(event)
    lines = frame.split("\n")
    assert lines[0] == f"id: {event.id}"
    assert lines[1] == "event: arrived"
    assert json.loads(lines[2][len("data: "):])["sequence"] == 4
    assert frame.endswith("\n\n")


def test_stream_replays_history_then_live_events_without_duplicates():
    dispatch_id = uuid.uuid4()
    history = [make_event(dispatch_id, 1), make_event(dispatch_id, 2)]
    live = make_event(dispatch_id, 3)

    subscription = broker.subscribe(dispatch_id)
    # Published between subscribe and the history read: arrives twice, sent once
    subscription.put(history[1])
    subscription.put(live)

    async def run():
        stream = sse_stream(subscription, history, keepalive_seconds=0.01)
        frames = [await stream.__anext__() for _ in range(3)]
        keepalive = await stream.__anext__()

        broker.unsubscribe(subscription)
        rest = [frame async for frame in stream]
        return frames, keepalive, rest

    frames, keepalive, rest = asyncio.run(run())
    assert [f.split("\n")[0] for f in frames] == [
        f"id: {history[0].id}", f"id: {history[1].id}", f"id: {live.id}"
    ]
    assert keepalive == ": keep-alive\n\n"
    assert rest == []
    assert broker.subscriber_count(dispatch_id) == 0


def test_unsubscribe_ends_a_waiting_stream():
    dispatch_id = uuid.uuid4()
    subscription = broker.subscribe(dispatch_id)

    async def run():
        stream = sse_stream(subscription, [], keepalive_seconds=30)
        asyncio.get_running_loop().call_later(0.05, broker.unsubscribe, subscription)
        return [frame async for frame in stream]

    # Returns well before the keep-alive interval
    assert asyncio.run(asyncio.wait_for(run(), timeout=5)) == []


def test_closing_the_stream_unsubscribes():
    dispatch_id = uuid.uuid4()
    subscription = broker.subscribe(dispatch_id)

    async def run():
        stream = sse_stream(subscription, [make_event(dispatch_id, 1)], keepalive_seconds=0.01)
        await stream.__anext__()
        await stream.aclose()

    asyncio.run(run())
    assert subscription.closed
    assert broker.subscriber_count(dispatch_id) == 0
