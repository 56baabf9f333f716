"""
Logical-time scheduler.

Every timer expiry and message delivery in the engine runs as a callback
dispatched from here. Events are kept in a heap ordered by
(time, insertion sequence), so events due at the same instant fire in the
order they were scheduled.
"""

import heapq
import logging
from typing import Any, Callable, List, Optional, Tuple

from .errors import ConfigurationError

logger = logging.getLogger("mcptt.scheduler")


class ScheduledEvent:
    """Handle for a pending callback."""

    __slots__ = ("time", "seq", "callback", "args", "cancelled", "fired")

    def __init__(self, time: float, seq: int, callback: Callable[..., Any], args: Tuple[Any, ...]):
        self.time = time
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        """Cancel the event. A cancelled event never runs."""
        self.cancelled = True

    def __lt__(self, other: "ScheduledEvent") -> bool:
        return (self.time, self.seq) < (other.time, other.seq)


class LogicalScheduler:
    """
    Single-threaded discrete event scheduler.

    The clock only moves when events are dispatched, so callbacks never run
    concurrently and a state transition is atomic with respect to all others.
    """

    def __init__(self, start_time: float = 0.0):
        self._now = start_time
        self._queue: List[ScheduledEvent] = []
        self._seq = 0
        self._dispatched = 0

    @property
    def now(self) -> float:
        """Current logical time in seconds."""
        return self._now

    @property
    def pending_count(self) -> int:
        """Number of events still due to run."""
        return len([e for e in self._queue if e.pending])

    @property
    def dispatched_count(self) -> int:
        return self._dispatched

    def schedule(self, delay: float, callback: Callable[..., Any], *args: Any) -> ScheduledEvent:
        """
        Schedule a callback after a delay on the logical clock.

        Args:
            delay: Delay in seconds (must be >= 0)
            callback: Function to invoke
            *args: Positional arguments for the callback

        Returns:
            Handle that can cancel the event

        Raises:
            ConfigurationError: If delay is negative
        """
        if delay < 0:
            raise ConfigurationError(f"Cannot schedule in the past (delay={delay})")

        self._seq += 1
        event = ScheduledEvent(self._now + delay, self._seq, callback, args)
        heapq.heappush(self._queue, event)
        return event

    def _next_pending(self) -> Optional[ScheduledEvent]:
        while self._queue and not self._queue[0].pending:
            heapq.heappop(self._queue)
        return self._queue[0] if self._queue else None

    def peek_time(self) -> Optional[float]:
        """Time of the next pending event, or None if idle."""
        event = self._next_pending()
        return event.time if event else None

    def step(self) -> bool:
        """
        Dispatch the next pending event.

        Returns:
            True if an event ran, False if nothing was pending
        """
        event = self._next_pending()
        if event is None:
            return False

        heapq.heappop(self._queue)
        self._now = event.time
        event.fired = True
        self._dispatched += 1
        event.callback(*event.args)
        return True

    def run(self, until: Optional[float] = None) -> int:
        """
        Dispatch events in time order.

        Args:
            until: Stop before events later than this time and move the
                clock to it. Runs until no events remain if None.

        Returns:
            Number of events dispatched
        """
        count = 0
        while True:
            next_time = self.peek_time()
            if next_time is None:
                break
            if until is not None and next_time > until:
                break
            self.step()
            count += 1

        if until is not None and until > self._now:
            self._now = until

        logger.debug(f"{self._now:.3f}s: dispatched {count} events")
        return count

    def run_for(self, duration: float) -> int:
        """Advance the clock by duration, dispatching everything due."""
        if duration < 0:
            raise ConfigurationError(f"Cannot run for a negative duration ({duration})")
        return self.run(until=self._now + duration)
