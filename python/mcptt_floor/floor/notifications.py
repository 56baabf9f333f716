"""Notifications published by the floor state machines."""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from ..protocol.messages import DenyCause


@dataclass(frozen=True)
class StateChange:
    """A state machine moved from one state to another."""
    ssrc: Optional[int]
    call_id: int
    machine: str
    from_state: str
    to_state: str
    time: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GrantNotification:
    ssrc: int
    call_id: int
    time: float
    priority: int = 0
    duration: float = 0.0
    dual_floor: bool = False


@dataclass(frozen=True)
class DenyNotification:
    ssrc: int
    call_id: int
    time: float
    cause: DenyCause


@dataclass(frozen=True)
class FailureNotification:
    """A bounded retransmission gave up."""
    ssrc: int
    call_id: int
    time: float
    counter: str
    state: str
