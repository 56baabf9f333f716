"""
In-memory message channel on the logical clock.

Stands in for the packet transport: each link joins two endpoints, and a
message sent on one end is delivered to the other after a fixed latency.
Delivery on a link is in order. Loss is optional and drawn from a seeded
generator so runs are reproducible.
"""

import logging
import random
from typing import Any, Callable, Optional, Tuple

from ..core.errors import ConfigurationError
from ..core.scheduler import LogicalScheduler

logger = logging.getLogger("mcptt.channel")


class ChannelEndpoint:
    """One end of a link."""

    def __init__(self, channel: "LocalChannel", name: str):
        self.channel = channel
        self.name = name
        self.peer: Optional["ChannelEndpoint"] = None
        self._receiver: Optional[Callable[[Any], None]] = None
        self.closed = False

    def on_receive(self, callback: Callable[[Any], None]) -> None:
        """Set the function invoked for each delivered message."""
        self._receiver = callback

    def send(self, message: Any) -> bool:
        """
        Send a message to the peer endpoint.

        Returns:
            False if the endpoint is closed or unconnected
        """
        if self.closed or self.peer is None:
            logger.warning(f"{self.name}: send on closed link dropped {message}")
            return False
        self.channel.transmit(self, self.peer, message)
        return True

    def deliver(self, message: Any) -> None:
        if self.closed:
            logger.debug(f"{self.name}: closed, discarding {message}")
            return
        if self._receiver is None:
            logger.warning(f"{self.name}: no receiver, discarding {message}")
            return
        self._receiver(message)

    def close(self) -> None:
        self.closed = True
        self._receiver = None

    def __repr__(self) -> str:
        return f"ChannelEndpoint({self.name})"


class LocalChannel:
    """Delayed, optionally lossy, in-order delivery between endpoints."""

    def __init__(
        self,
        scheduler: LogicalScheduler,
        latency: float = 0.005,
        loss_rate: float = 0.0,
        seed: Optional[int] = None,
    ):
        """
        Initialize channel.

        Args:
            scheduler: Logical clock used to schedule deliveries
            latency: One-way delay in logical seconds
            loss_rate: Probability in [0, 1) that a message is dropped
            seed: Seed for the loss generator
        """
        if latency < 0:
            raise ConfigurationError(f"latency must be >= 0, got {latency}")
        if not 0.0 <= loss_rate < 1.0:
            raise ConfigurationError(f"loss_rate must be in [0, 1), got {loss_rate}")

        self.scheduler = scheduler
        self.latency = latency
        self.loss_rate = loss_rate
        self._random = random.Random(seed)
        self._sent_count = 0
        self._delivered_count = 0
        self._lost_count = 0

    def create_link(self, a_name: str, b_name: str) -> Tuple[ChannelEndpoint, ChannelEndpoint]:
        """Create two connected endpoints."""
        a = ChannelEndpoint(self, a_name)
        b = ChannelEndpoint(self, b_name)
        a.peer = b
        b.peer = a
        return a, b

    def transmit(self, source: ChannelEndpoint, destination: ChannelEndpoint, message: Any) -> None:
        self._sent_count += 1
        if self.loss_rate and self._random.random() < self.loss_rate:
            self._lost_count += 1
            logger.debug(f"{self.scheduler.now:.3f}s: lost {source.name} -> {destination.name}: {message}")
            return
        self.scheduler.schedule(self.latency, self._deliver, destination, message)

    def _deliver(self, destination: ChannelEndpoint, message: Any) -> None:
        self._delivered_count += 1
        destination.deliver(message)

    def get_stats(self) -> dict:
        """Get channel statistics."""
        return {
            "sent_count": self._sent_count,
            "delivered_count": self._delivered_count,
            "lost_count": self._lost_count,
            "latency": self.latency,
            "loss_rate": self.loss_rate,
        }
