"""Multi-subscriber notification hooks."""

import logging
from typing import Any, Callable, List

logger = logging.getLogger("mcptt.observers")


class Hook:
    """
    Named notification point with any number of subscribers.

    Subscribers run in subscription order. A subscriber that raises is
    logged and the rest still run.
    """

    def __init__(self, name: str):
        self.name = name
        self._subscribers: List[Callable[..., Any]] = []

    def subscribe(self, callback: Callable[..., Any]) -> Callable[[], None]:
        """
        Register a subscriber.

        Returns:
            Function that removes the subscriber
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, *args: Any) -> None:
        for callback in list(self._subscribers):
            try:
                callback(*args)
            except Exception:
                logger.exception(f"Subscriber of {self.name} failed")

    def clear(self) -> None:
        self._subscribers.clear()

    def __len__(self) -> int:
        return len(self._subscribers)
