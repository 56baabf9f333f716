"""
Fatal error types.

Protocol anomalies (unexpected or out-of-state floor messages) are never
raised; they are logged and ignored by the state machines. The exceptions
below mark logic or configuration violations that must abort the caller.
"""


class FloorControlError(Exception):
    """Base class for fatal floor control errors."""


class ConfigurationError(FloorControlError, ValueError):
    """Invalid timer delay, counter limit or other configuration value."""


class CallIdOutOfRangeError(FloorControlError, ValueError):
    """Call ID was never issued by the allocator."""


class CallNotFoundError(FloorControlError, LookupError):
    """No call registered under the given call ID."""


class ParticipantNotFoundError(FloorControlError, LookupError):
    """SSRC is not part of the arbitrator's roster."""


class TimerDisposedError(FloorControlError, RuntimeError):
    """A timer was started after its owner released it."""
