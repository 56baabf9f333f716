"""Engine primitives: logical clock, timers, counters, queue and hooks."""
from .scheduler import LogicalScheduler, ScheduledEvent
from .timer import Timer
from .counter import Counter
from .floor_queue import FloorQueue, QueueEntry
from .observers import Hook
from .errors import (
    FloorControlError,
    ConfigurationError,
    CallIdOutOfRangeError,
    CallNotFoundError,
    ParticipantNotFoundError,
    TimerDisposedError,
)

__all__ = [
    "LogicalScheduler",
    "ScheduledEvent",
    "Timer",
    "Counter",
    "FloorQueue",
    "QueueEntry",
    "Hook",
    "FloorControlError",
    "ConfigurationError",
    "CallIdOutOfRangeError",
    "CallNotFoundError",
    "ParticipantNotFoundError",
    "TimerDisposedError",
]
