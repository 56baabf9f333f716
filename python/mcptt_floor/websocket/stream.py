"""
Floor Event Stream.

Publishes floor control events (state changes, floor messages) to one or
more WebSocket endpoints with:
- Queue size limits to prevent memory issues
- Automatic reconnection
- Multiple endpoint support for redundancy
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from ..server.call_session import CallSession

logger = logging.getLogger("mcptt.websocket")


@dataclass
class FloorEvent:
    """Event to send via WebSocket."""
    type: str
    call_id: int
    timestamp: float
    data: Dict[str, Any]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.type,
            "call_id": self.call_id,
            "timestamp": self.timestamp,
        }
        result.update(self.data)
        return result


class FloorEventStream:
    """
    Stream floor events to WebSocket endpoints.

    Features:
    - Queue size limit with oldest-event-drop policy
    - Automatic reconnection on disconnect
    - Multiple endpoint support for redundancy
    """

    def __init__(
        self,
        urls: List[str],
        queue_maxsize: int = 1000,
        reconnect_interval: float = 5.0,
        ping_interval: float = 20.0,
        ping_timeout: float = 10.0,
    ):
        """
        Initialize event stream.

        Args:
            urls: List of WebSocket URLs to connect to
            queue_maxsize: Maximum queue size (older events dropped when full)
            reconnect_interval: Seconds between reconnection attempts
            ping_interval: WebSocket ping interval
            ping_timeout: WebSocket ping timeout
        """
        self.urls = [u for u in urls if u and not u.strip().startswith("#")]
        self.queue_maxsize = queue_maxsize
        self.reconnect_interval = reconnect_interval
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout

        self._connections: Dict[str, Any] = {}
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_maxsize)
        self._running = False
        self._dropped_count = 0
        self._sent_count = 0
        self._reconnect_tasks: Dict[str, asyncio.Task] = {}
        self._send_task: Optional[asyncio.Task] = None

    @staticmethod
    def _is_connected(ws: Any) -> bool:
        return ws.state is State.OPEN

    @property
    def connected_count(self) -> int:
        """Number of active connections."""
        return len([ws for ws in self._connections.values() if self._is_connected(ws)])

    @property
    def dropped_count(self) -> int:
        """Number of dropped events due to queue overflow."""
        return self._dropped_count

    @property
    def sent_count(self) -> int:
        """Number of successfully sent events."""
        return self._sent_count

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    async def _connect_one(self, url: str) -> bool:
        """
        Connect to a single WebSocket server.

        Args:
            url: WebSocket URL

        Returns:
            True if connection successful
        """
        try:
            logger.info(f"Connecting to: {url}")
            ws = await websockets.connect(
                url,
                ping_interval=self.ping_interval,
                ping_timeout=self.ping_timeout,
            )
            self._connections[url] = ws
            logger.info(f"Connected: {url}")
            return True
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            logger.warning(f"Connection failed: {url} - {e}")
            return False

    async def _reconnect_loop(self, url: str):
        while self._running and url not in self._connections:
            await asyncio.sleep(self.reconnect_interval)
            if await self._connect_one(url):
                break

    def _schedule_reconnect(self, url: str) -> None:
        task = self._reconnect_tasks.get(url)
        if task is None or task.done():
            self._reconnect_tasks[url] = asyncio.create_task(self._reconnect_loop(url))

    async def connect_all(self):
        """Connect to all WebSocket servers."""
        if not self.urls:
            logger.warning("No WebSocket URLs configured")
            return

        for url in self.urls:
            if not await self._connect_one(url):
                self._schedule_reconnect(url)

    def publish(self, event: Any) -> None:
        """
        Queue an event for sending without blocking.

        If the queue is full the oldest event is dropped.

        Args:
            event: Event object with to_dict() method, or dict
        """
        event_dict = event.to_dict() if hasattr(event, "to_dict") else event

        try:
            self._queue.put_nowait(event_dict)
        except asyncio.QueueFull:
            self._queue.get_nowait()
            self._dropped_count += 1
            if self._dropped_count % 100 == 1:
                logger.warning(f"Queue full, dropped {self._dropped_count} events")
            self._queue.put_nowait(event_dict)

    async def send(self, event: Any):
        self.publish(event)

    def attach_call(self, session: CallSession) -> None:
        """Publish state changes and arbitrator traffic of a call."""
        arbitrator = session.arbitrator

        def on_state_change(change):
            self.publish(
                FloorEvent(
                    type="state_change",
                    call_id=change.call_id,
                    timestamp=change.time,
                    data=change.to_dict(),
                )
            )

        def on_message(event_type):
            def handler(call_id, peer, message):
                data = {"peer": peer, "message": message.to_dict()}
                self.publish(FloorEvent(type=event_type, call_id=call_id, timestamp=arbitrator.now, data=data))
            return handler

        arbitrator.state_changed.subscribe(on_state_change)
        arbitrator.tx.subscribe(on_message("floor_tx"))
        arbitrator.rx.subscribe(on_message("floor_rx"))
        for participant in session.participants.values():
            participant.state_changed.subscribe(on_state_change)

    async def _send_loop(self):
        """Send queued events to all connections."""
        while self._running:
            try:
                event_dict = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            data = json.dumps(event_dict, ensure_ascii=False)
            dead_urls = []
            for url, ws in list(self._connections.items()):
                if not self._is_connected(ws):
                    dead_urls.append(url)
                    continue
                try:
                    await ws.send(data)
                    self._sent_count += 1
                    logger.debug(f"[{url}] {event_dict.get('type', 'unknown')}")
                except ConnectionClosed as e:
                    logger.error(f"Send error ({url}): {e}")
                    dead_urls.append(url)

            for url in dead_urls:
                self._connections.pop(url, None)
                self._schedule_reconnect(url)

    async def flush(self, timeout: float = 5.0) -> bool:
        """
        Wait until the queue drains.

        Returns:
            True if drained, False on timeout or with no connections
        """
        if not self._connections:
            return False
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self._queue.qsize() and loop.time() < deadline:
            await asyncio.sleep(0.05)
        return self._queue.qsize() == 0

    async def start(self):
        """Start the event stream."""
        self._running = True
        self._send_task = asyncio.create_task(self._send_loop())
        await self.connect_all()

    async def stop(self):
        """Stop the event stream and close connections."""
        self._running = False

        if self._send_task is not None:
            self._send_task.cancel()
            self._send_task = None

        for task in self._reconnect_tasks.values():
            task.cancel()
        self._reconnect_tasks.clear()

        for url, ws in list(self._connections.items()):
            try:
                await ws.close()
            except WebSocketException as e:
                logger.debug(f"Close error ({url}): {e}")

        self._connections.clear()

        logger.info(f"Event stream stopped. Sent: {self._sent_count}, Dropped: {self._dropped_count}")

    def get_stats(self) -> dict:
        """Get stream statistics."""
        return {
            "connected": self.connected_count,
            "total_urls": len(self.urls),
            "queue_size": self._queue.qsize(),
            "queue_maxsize": self.queue_maxsize,
            "sent_count": self._sent_count,
            "dropped_count": self._dropped_count,
        }
