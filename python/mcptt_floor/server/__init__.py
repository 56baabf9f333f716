"""Call hosting: call ids, call sessions and the floor server."""
from .call_ids import CallIdAllocator
from .call_session import CallSession
from .app import FloorServer

__all__ = ["CallIdAllocator", "CallSession", "FloorServer"]
