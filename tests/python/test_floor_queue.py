"""Tests for the floor request queue and the preemption rule."""

import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))

from mcptt_floor.core import ConfigurationError, FloorQueue
from mcptt_floor.floor import is_preemptive
from mcptt_floor.protocol import FloorIndicator

NORMAL = FloorIndicator.NORMAL_CALL
EMERGENCY = FloorIndicator.EMERGENCY_CALL
IMMINENT = FloorIndicator.IMMINENT_CALL
BROADCAST = FloorIndicator.BROADCAST_CALL


class TestFloorQueue:
    """Test FloorQueue class."""

    def test_priority_then_arrival(self):
        """Test higher priority first, ties broken by arrival."""
        queue = FloorQueue()
        queue.enqueue(1, priority=1)
        queue.enqueue(2, priority=5)
        queue.enqueue(3, priority=1)
        queue.enqueue(4, priority=5)

        assert [e.ssrc for e in queue] == [2, 4, 1, 3]
        assert queue.position_of(2) == 1
        assert queue.position_of(4) == 2
        assert queue.position_of(1) == 3
        assert queue.position_of(3) == 4

    def test_position_monotonic_in_priority(self):
        """Test rank strictly increases as priority decreases."""
        queue = FloorQueue()
        for ssrc, priority in [(10, 2), (11, 7), (12, 4), (13, 9)]:
            queue.enqueue(ssrc, priority)

        ranked = sorted(queue, key=lambda e: queue.position_of(e.ssrc))
        priorities = [e.priority for e in ranked]

        assert priorities == sorted(priorities, reverse=True)

    def test_duplicate_rejected(self):
        queue = FloorQueue()
        assert queue.enqueue(1, 3) is True
        assert queue.enqueue(1, 7) is False
        assert len(queue) == 1

    def test_full_rejected(self):
        queue = FloorQueue(capacity=2)
        assert queue.enqueue(1, 1)
        assert queue.enqueue(2, 1)
        assert queue.is_full
        assert queue.enqueue(3, 9) is False

    def test_dequeue_highest(self):
        queue = FloorQueue()
        queue.enqueue(1, 1)
        queue.enqueue(2, 3)

        entry = queue.dequeue_highest()

        assert entry.ssrc == 2
        assert queue.position_of(1) == 1
        assert 2 not in queue

    def test_dequeue_empty(self):
        assert FloorQueue().dequeue_highest() is None

    def test_remove(self):
        """Test removing a middle entry shifts ranks."""
        queue = FloorQueue()
        queue.enqueue(1, 1)
        queue.enqueue(2, 1)
        queue.enqueue(3, 1)

        removed = queue.remove(2)

        assert removed.ssrc == 2
        assert queue.position_of(3) == 2
        assert queue.remove(2) is None

    def test_position_of_absent(self):
        assert FloorQueue().position_of(42) is None

    def test_clear(self):
        queue = FloorQueue()
        queue.enqueue(1, 1)
        queue.clear()
        assert len(queue) == 0
        assert not queue.contains(1)
        assert queue.enqueue(1, 1)

    def test_invalid_capacity(self):
        with pytest.raises(ConfigurationError):
            FloorQueue(capacity=0)


class TestIsPreemptive:
    """Test the preemption rule."""

    def test_emergency_preempts_normal(self):
        assert is_preemptive(EMERGENCY, 5, NORMAL, 3) is True

    def test_equal_priority_never_preempts(self):
        assert is_preemptive(NORMAL, 3, NORMAL, 3) is False

    def test_class_dominates_priority(self):
        """Test a lower class loses even with a higher number."""
        assert is_preemptive(NORMAL, 2, EMERGENCY, 1) is False
        assert is_preemptive(NORMAL, 9, EMERGENCY, 1) is False

    def test_higher_priority_same_class(self):
        assert is_preemptive(NORMAL, 4, NORMAL, 3) is True
        assert is_preemptive(EMERGENCY, 2, EMERGENCY, 1) is True

    def test_imminent_between_normal_and_emergency(self):
        assert is_preemptive(IMMINENT, 1, NORMAL, 9) is True
        assert is_preemptive(IMMINENT, 9, EMERGENCY, 1) is False
        assert is_preemptive(EMERGENCY, 1, IMMINENT, 9) is True

    def test_broadcast_ranks_as_normal(self):
        assert is_preemptive(BROADCAST, 3, NORMAL, 3) is False
        assert is_preemptive(NORMAL, 4, BROADCAST, 3) is True

    def test_extra_flags_ignored(self):
        request = EMERGENCY | FloorIndicator.QUEUEING_SUPPORTED
        call = NORMAL | FloorIndicator.QUEUEING_SUPPORTED
        assert is_preemptive(request, 1, call, 1) is True

    def test_deterministic(self):
        results = {is_preemptive(NORMAL, 3, NORMAL, 2) for _ in range(10)}
        assert results == {True}

    def test_no_call_type_is_malformed(self):
        with pytest.raises(ValueError):
            is_preemptive(FloorIndicator.QUEUEING_SUPPORTED, 3, NORMAL, 1)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
