"""Bounded retry counters."""

from .errors import ConfigurationError


class Counter:
    """
    Retry counter with an upper limit.

    increment() reports the limit being reached exactly once per sequence;
    reset() starts a new sequence.
    """

    def __init__(self, name: str, limit: int = 3):
        self.name = name
        self._value = 0
        self._fired = False
        self._limit = 1
        self.limit = limit

    @property
    def limit(self) -> int:
        return self._limit

    @limit.setter
    def limit(self, value: int) -> None:
        if value < 1:
            raise ConfigurationError(f"Counter {self.name} limit must be >= 1, got {value}")
        self._limit = int(value)

    @property
    def value(self) -> int:
        return self._value

    @property
    def is_limit_reached(self) -> bool:
        return self._value >= self._limit

    def increment(self) -> bool:
        """
        Increment the counter.

        Returns:
            True the first time the value reaches the limit
        """
        self._value += 1
        if self.is_limit_reached and not self._fired:
            self._fired = True
            return True
        return False

    def reset(self, value: int = 0) -> None:
        self._value = value
        self._fired = self.is_limit_reached

    def __repr__(self) -> str:
        return f"Counter({self.name}, {self._value}/{self._limit})"
