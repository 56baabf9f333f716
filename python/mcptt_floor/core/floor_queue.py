"""Priority queue of pending floor requests."""

import bisect
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from ..protocol.call_type import FloorIndicator
from .errors import ConfigurationError

logger = logging.getLogger("mcptt.queue")


@dataclass
class QueueEntry:
    """A queued floor request."""
    ssrc: int
    priority: int
    arrival: int
    indicator: FloorIndicator = FloorIndicator.NORMAL_CALL

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (-self.priority, self.arrival)


@dataclass
class FloorQueue:
    """
    Floor requests ordered by priority (highest first), then arrival.

    A requester appears at most once. Ranks are 1-based.
    """
    capacity: int = 16
    _entries: List[QueueEntry] = field(default_factory=list, repr=False)
    _keys: List[Tuple[int, int]] = field(default_factory=list, repr=False)
    _by_ssrc: Dict[int, QueueEntry] = field(default_factory=dict, repr=False)
    _arrivals: int = field(default=0, repr=False)

    def __post_init__(self):
        if self.capacity < 1:
            raise ConfigurationError(f"Queue capacity must be >= 1, got {self.capacity}")

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[QueueEntry]:
        return iter(list(self._entries))

    def __contains__(self, ssrc: object) -> bool:
        return ssrc in self._by_ssrc

    def contains(self, ssrc: int) -> bool:
        return ssrc in self._by_ssrc

    @property
    def is_empty(self) -> bool:
        return not self._entries

    @property
    def is_full(self) -> bool:
        return len(self._entries) >= self.capacity

    def enqueue(
        self,
        ssrc: int,
        priority: int,
        indicator: FloorIndicator = FloorIndicator.NORMAL_CALL,
    ) -> bool:
        """
        Add a request to the queue.

        Args:
            ssrc: Requester identity
            priority: Floor priority (higher is served first)
            indicator: Indicator carried by the request

        Returns:
            False if the requester is already queued or the queue is full
        """
        if ssrc in self._by_ssrc:
            logger.debug(f"SSRC {ssrc} already queued")
            return False
        if self.is_full:
            logger.debug(f"Queue full ({self.capacity}), rejecting SSRC {ssrc}")
            return False

        self._arrivals += 1
        entry = QueueEntry(ssrc=ssrc, priority=priority, arrival=self._arrivals, indicator=indicator)
        index = bisect.bisect_right(self._keys, entry.sort_key)
        self._keys.insert(index, entry.sort_key)
        self._entries.insert(index, entry)
        self._by_ssrc[ssrc] = entry
        return True

    def peek(self) -> Optional[QueueEntry]:
        return self._entries[0] if self._entries else None

    def dequeue_highest(self) -> Optional[QueueEntry]:
        """Remove and return the best candidate, or None if empty."""
        if not self._entries:
            return None
        entry = self._entries.pop(0)
        self._keys.pop(0)
        del self._by_ssrc[entry.ssrc]
        return entry

    def remove(self, ssrc: int) -> Optional[QueueEntry]:
        """Remove a requester. Returns the removed entry, or None if absent."""
        entry = self._by_ssrc.pop(ssrc, None)
        if entry is None:
            return None
        index = self._entries.index(entry)
        del self._entries[index]
        del self._keys[index]
        return entry

    def position_of(self, ssrc: int) -> Optional[int]:
        """1-based rank of a requester, or None if not queued."""
        entry = self._by_ssrc.get(ssrc)
        if entry is None:
            return None
        return self._entries.index(entry) + 1

    def clear(self) -> None:
        self._entries.clear()
        self._keys.clear()
        self._by_ssrc.clear()
