"""Call identifier allocation."""
from typing import Set
import threading
import logging

from ..core.errors import CallIdOutOfRangeError

logger = logging.getLogger("mcptt.call_ids")


class CallIdAllocator:
    """
    Allocator for call identifiers.

    Ids are handed out in increasing order and never reused. An id above
    the last one allocated was never issued by this allocator.
    """

    def __init__(self, start: int = 1, end: int = 0xFFFF):
        """
        Initialize allocator.

        Args:
            start: First call id
            end: Last call id (inclusive)
        """
        self.start = start
        self.end = end
        self._next = start
        self.allocated: Set[int] = set()
        self._lock = threading.Lock()
        logger.debug(f"CallIdAllocator initialized with range {start}-{end}")

    @property
    def last_allocated(self) -> int:
        """Highest id issued so far (start - 1 if none)."""
        return self._next - 1

    def allocate(self) -> int:
        """
        Allocate the next call id.

        Raises:
            CallIdOutOfRangeError: If the range is exhausted
        """
        with self._lock:
            if self._next > self.end:
                raise CallIdOutOfRangeError(f"Call id range {self.start}-{self.end} exhausted")
            call_id = self._next
            self._next += 1
            self.allocated.add(call_id)
            logger.debug(f"Allocated call id {call_id}")
            return call_id

    def validate(self, call_id: int) -> None:
        """
        Check that call_id was issued by this allocator.

        Raises:
            CallIdOutOfRangeError: If call_id was never allocated
        """
        if not self.start <= call_id <= self.last_allocated:
            raise CallIdOutOfRangeError(
                f"Call id {call_id} outside allocated range {self.start}-{self.last_allocated}"
            )

    def release(self, call_id: int) -> None:
        with self._lock:
            self.allocated.discard(call_id)

    @property
    def allocated_count(self) -> int:
        """Number of ids in use."""
        with self._lock:
            return len(self.allocated)
