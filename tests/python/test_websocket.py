"""Tests for the floor event stream."""

import os
import sys
import asyncio
import json
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))

from websockets.protocol import State

from mcptt_floor.protocol import CallType
from mcptt_floor.simulation import FloorSimulation
from mcptt_floor.websocket import FloorEvent, FloorEventStream


class TestFloorEvent:
    """Test FloorEvent dataclass."""

    def test_to_dict_basic(self):
        """Test basic event serialization."""
        event = FloorEvent(
            type="state_change",
            call_id=3,
            timestamp=0.105,
            data={"to_state": "Taken"}
        )
        result = event.to_dict()

        assert result["type"] == "state_change"
        assert result["call_id"] == 3
        assert result["to_state"] == "Taken"

    def test_to_dict_empty_data(self):
        """Test event with empty data."""
        event = FloorEvent(type="ping", call_id=1, timestamp=0.0, data={})
        assert len(event.to_dict()) == 3


class TestFloorEventStream:
    """Test FloorEventStream class."""

    def test_init_with_urls(self):
        """Test initialization with URLs."""
        stream = FloorEventStream(
            urls=["wss://test1.com", "wss://test2.com"],
            queue_maxsize=100
        )

        assert len(stream.urls) == 2
        assert stream.queue_maxsize == 100

    def test_init_filters_comments(self):
        """Test that commented URLs are filtered."""
        stream = FloorEventStream(
            urls=["wss://valid.com", "# wss://commented.com", ""],
        )

        assert stream.urls == ["wss://valid.com"]

    @pytest.mark.asyncio
    async def test_send_queues_event(self):
        """Test that send() queues events."""
        stream = FloorEventStream(urls=["wss://test.com"])

        await stream.send(FloorEvent(type="test", call_id=1, timestamp=0.0, data={}))

        assert stream.pending_count == 1

    @pytest.mark.asyncio
    async def test_queue_overflow_drops_oldest(self):
        """Test queue overflow keeps the newest events."""
        stream = FloorEventStream(urls=["wss://test.com"], queue_maxsize=2)

        for i in range(3):
            stream.publish({"type": f"event_{i}"})

        assert stream.pending_count == 2
        assert stream.dropped_count == 1
        assert stream._queue.get_nowait()["type"] == "event_1"

    @pytest.mark.asyncio
    async def test_attach_call_publishes_floor_events(self, floor_config):
        """Test state changes and arbitrator traffic are queued."""
        stream = FloorEventStream(urls=[], queue_maxsize=1000)
        sim = FloorSimulation(floor_config)
        call = sim.create_call(CallType.BASIC_GROUP, originator=1)
        a = sim.add_client(call.call_id, ssrc=1, priority=3)
        sim.add_client(call.call_id, ssrc=2, priority=3)
        stream.attach_call(call)

        sim.initialize_call(call.call_id)
        a.ptt_push()
        sim.run_for(0.1)

        events = []
        while stream.pending_count:
            events.append(stream._queue.get_nowait())
        types = {e["type"] for e in events}

        assert {"state_change", "floor_tx", "floor_rx"} <= types
        request = next(e for e in events if e["type"] == "floor_rx")
        assert request["peer"] == 1
        assert request["message"]["subtype"] == "request"
        assert all(e["call_id"] == call.call_id for e in events)
        json.dumps(events)

    def test_stats(self):
        """Test get_stats() method."""
        stream = FloorEventStream(urls=["wss://test.com"], queue_maxsize=500)

        stats = stream.get_stats()

        assert stats["total_urls"] == 1
        assert stats["queue_maxsize"] == 500
        assert stats["sent_count"] == 0
        assert stats["connected"] == 0


class TestFloorEventStreamConnection:
    """Test WebSocket connection handling."""

    @pytest.mark.asyncio
    async def test_connect_failure_returns_false(self):
        """Test that connection failures are reported."""
        stream = FloorEventStream(urls=["wss://invalid.test"])

        with patch('mcptt_floor.websocket.stream.websockets') as mock_ws:
            mock_ws.connect = AsyncMock(side_effect=OSError("Connection refused"))

            result = await stream._connect_one("wss://invalid.test")

            assert result is False
            assert stream.connected_count == 0

    @pytest.mark.asyncio
    async def test_connect_success(self):
        stream = FloorEventStream(urls=["wss://ok.test"])
        ws = MagicMock()
        ws.state = State.OPEN

        with patch('mcptt_floor.websocket.stream.websockets') as mock_ws:
            mock_ws.connect = AsyncMock(return_value=ws)

            result = await stream._connect_one("wss://ok.test")

        assert result is True
        assert stream.connected_count == 1

    @pytest.mark.asyncio
    async def test_send_loop_delivers_json(self):
        """Test queued events are sent to open connections."""
        stream = FloorEventStream(urls=["wss://ok.test"])
        ws = MagicMock()
        ws.state = State.OPEN
        ws.send = AsyncMock()
        ws.close = AsyncMock()
        stream._connections["wss://ok.test"] = ws
        stream._running = True
        stream._send_task = asyncio.create_task(stream._send_loop())

        stream.publish(FloorEvent(type="test", call_id=7, timestamp=1.0, data={"x": 1}))
        assert await stream.flush(timeout=1.0)
        await asyncio.sleep(0)
        await stream.stop()

        payload = json.loads(ws.send.call_args[0][0])
        assert payload == {"type": "test", "call_id": 7, "timestamp": 1.0, "x": 1}
        assert stream.sent_count == 1
        ws.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_flush_without_connections(self):
        stream = FloorEventStream(urls=[])
        stream.publish({"type": "x"})
        assert await stream.flush(timeout=0.1) is False

    @pytest.mark.asyncio
    async def test_stop_clears_connections(self):
        """Test that stop() clears all connections."""
        stream = FloorEventStream(urls=["wss://test.com"])
        stream._running = True

        await stream.stop()

        assert stream._running is False
        assert len(stream._connections) == 0


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
