"""Message transport between floor participants and arbitrators."""
from .channel import ChannelEndpoint, LocalChannel

__all__ = ["ChannelEndpoint", "LocalChannel"]
