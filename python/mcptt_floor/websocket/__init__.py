"""Floor event streaming module."""
from .stream import FloorEvent, FloorEventStream

__all__ = ["FloorEvent", "FloorEventStream"]
