"""Cancellable one-shot timers on the logical clock."""

import logging
from typing import Callable, Optional

from .errors import ConfigurationError, TimerDisposedError
from .scheduler import LogicalScheduler, ScheduledEvent

logger = logging.getLogger("mcptt.timer")


class Timer:
    """
    Named one-shot timer owned by exactly one state machine.

    start() on a running timer reschedules it rather than adding a second
    event, and stop() before expiry guarantees the callback never runs.
    """

    def __init__(
        self,
        name: str,
        scheduler: LogicalScheduler,
        delay: float,
        callback: Callable[[], None],
    ):
        self.name = name
        self._scheduler = scheduler
        self._callback = callback
        self._event: Optional[ScheduledEvent] = None
        self._disposed = False
        self._delay = 0.0
        self.delay = delay

    @property
    def delay(self) -> float:
        return self._delay

    @delay.setter
    def delay(self, value: float) -> None:
        if value < 0:
            raise ConfigurationError(f"Timer {self.name} delay must be >= 0, got {value}")
        self._delay = float(value)

    @property
    def is_running(self) -> bool:
        return self._event is not None and self._event.pending

    @property
    def expires_at(self) -> Optional[float]:
        return self._event.time if self.is_running else None

    def start(self) -> None:
        """Start the timer, resetting it if already running."""
        if self._disposed:
            raise TimerDisposedError(f"Timer {self.name} started after dispose")

        if self.is_running:
            self._event.cancel()

        self._event = self._scheduler.schedule(self._delay, self._expire)
        logger.debug(
            f"{self._scheduler.now:.3f}s: {self.name} started, expires at {self._event.time:.3f}s"
        )

    def restart(self) -> None:
        self.start()

    def stop(self) -> None:
        """Stop the timer. Safe to call when not running."""
        if self._event is not None:
            self._event.cancel()
            self._event = None

    def dispose(self) -> None:
        """Stop the timer permanently."""
        self.stop()
        self._disposed = True

    def _expire(self) -> None:
        self._event = None
        logger.debug(f"{self._scheduler.now:.3f}s: {self.name} expired")
        self._callback()

    def __repr__(self) -> str:
        return f"Timer({self.name}, delay={self._delay}, running={self.is_running})"
