"""
Change-event feed for dashboards (WS /ws). Route handlers publish order and inventory
changes; every connected socket receives them as JSON after an initial hello.
"""
import asyncio
import logging
import threading

from fastapi import APIRouter, WebSocket

logger = logging.getLogger(__name__)
router = APIRouter()

NEW_ORDER = "new_order"
ORDER_UPDATED = "order_updated"
INVENTORY_UPDATED = "inventory_updated"


class EventHub:
    """
    Fan-out of events to subscriber queues. Each queue belongs to the event loop that
    subscribed it; publish() may be called from any thread (sync route handlers run in
    the threadpool).
    """

    def __init__(self):
        self._subscribers: list[tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = []
        self._lock = threading.Lock()

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        with self._lock:
            self._subscribers.append((asyncio.get_running_loop(), queue))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        with self._lock:
            self._subscribers = [(loop, q) for loop, q in self._subscribers if q is not queue]

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event_type: str, data: dict | None = None) -> None:
        event = {"type": event_type}
        if data is not None:
            event["data"] = data
        with self._lock:
            subscribers = list(self._subscribers)
        for loop, queue in subscribers:
            try:
                loop.call_soon_threadsafe(queue.put_nowait, event)
            except RuntimeError:
                # Loop already closed; the socket is gone
                logger.debug("Dropping %s event for closed subscriber", event_type)


hub = EventHub()


@router.websocket("/ws")
async def feed(websocket: WebSocket):
    await websocket.accept()
    queue = hub.subscribe()

    async def forward():
        while True:
            await websocket.send_json(await queue.get())

    sender = None
    try:
        await websocket.send_json({"type": "hello"})
        sender = asyncio.create_task(forward())
        # Client messages are ignored; the loop ends when the socket closes
        while (await websocket.receive())["type"] != "websocket.disconnect":
            pass
    finally:
        if sender is not None:
            sender.cancel()
        hub.unsubscribe(queue)
        logger.debug("Event feed subscriber disconnected")
