import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from fastapi import WebSocket, status

logger = logging.getLogger(__name__)

# Queued behind the last message (and any awaited reply) of an evicted subscriber
_CLOSE = object()


@dataclass
class Subscriber:
    websocket: WebSocket
    channel: str
    loop: asyncio.AbstractEventLoop
    client_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    # Requests received but not yet answered; touched on the event loop only
    pending_requests: int = 0
    closing: bool = False


class ConnectionManager:
    """Publish/subscribe gateway between the coordinator and WebSocket clients.

    Each subscriber owns a FIFO queue drained by its own sender task, so every
    socket receives messages in exactly the order they were published. ``publish``
    may be called from worker threads (sync HTTP endpoints) or from the event loop.
    """

    def __init__(self):
        self.active_connections: Dict[str, Dict[str, Subscriber]] = {}
        self._lock = threading.Lock()

    async def connect(self, websocket: WebSocket, channel: str) -> Subscriber:
        """Accept the socket and register it on ``channel``."""
        await websocket.accept()
        subscriber = Subscriber(websocket=websocket, channel=channel, loop=asyncio.get_running_loop())
        with self._lock:
            self.active_connections.setdefault(channel, {})[subscriber.client_id] = subscriber
        logger.info(f"Client {subscriber.client_id} subscribed to {channel}")
        return subscriber

    def disconnect(self, channel: str, client_id: str):
        with self._lock:
            connections = self.active_connections.get(channel)
            if connections and client_id in connections:
                del connections[client_id]
                # Clean up empty channels
                if not connections:
                    del self.active_connections[channel]
                logger.info(f"Client {client_id} unsubscribed from {channel}")

    def subscribers(self, channel: str) -> List[Subscriber]:
        with self._lock:
            return list(self.active_connections.get(channel, {}).values())

    def _on_loop(self, subscriber: Subscriber, callback: Callable[..., Any], *args: Any):
        """Run ``callback`` on the subscriber's event loop, in call order, from any thread."""
        loop = subscriber.loop
        if loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            callback(*args)
        else:
            loop.call_soon_threadsafe(callback, *args)

    def _enqueue(self, subscriber: Subscriber, message: Any):
        self._on_loop(subscriber, subscriber.queue.put_nowait, message)

    def _request_close(self, subscriber: Subscriber):
        # Event loop only. A request in flight queues the close behind its reply.
        subscriber.closing = True
        if subscriber.pending_requests == 0:
            subscriber.queue.put_nowait(_CLOSE)

    def send_personal_message(self, subscriber: Subscriber, message: dict):
        """Queue a message for one subscriber behind anything already published to it."""
        self._enqueue(subscriber, message)

    def begin_request(self, subscriber: Subscriber):
        """Hold back eviction of ``subscriber`` until ``end_request`` queues its reply."""
        subscriber.pending_requests += 1

    def end_request(self, subscriber: Subscriber, reply: dict):
        subscriber.pending_requests -= 1
        subscriber.queue.put_nowait(reply)
        if subscriber.closing and subscriber.pending_requests == 0:
            subscriber.queue.put_nowait(_CLOSE)

    def publish(self, channel: str, event: Dict[str, Any]) -> None:
        for subscriber in self.subscribers(channel):
            self._enqueue(subscriber, event)

    def evict(self, channel: str) -> None:
        """Close every socket on ``channel`` once its pending messages and replies are sent."""
        with self._lock:
            connections = self.active_connections.pop(channel, {})
        for subscriber in connections.values():
            self._on_loop(subscriber, self._request_close, subscriber)
        if connections:
            logger.info(f"Evicted {len(connections)} subscriber(s) from {channel}")

    async def pump(self, subscriber: Subscriber):
        """Drain the subscriber's queue onto its socket until evicted or the send fails."""
        while True:
            message = await subscriber.queue.get()
            if message is _CLOSE:
                await subscriber.websocket.close(code=status.WS_1000_NORMAL_CLOSURE, reason="game deleted")
                return
            try:
                await subscriber.websocket.send_json(message)
            except Exception as e:
                logger.error(f"Error sending to {subscriber.client_id}: {e}", exc_info=True)
                self.disconnect(subscriber.channel, subscriber.client_id)
                return
