"""
Floor control message set.

Logical fields only; bit-level encoding belongs to the transport. Each
message carries a subtype tag for dispatch and an ack_required flag; a
receiver answers an ack_required message with FloorAck.

to_dict()/parse_message() give a JSON-friendly form used by the event
stream and by traces.
"""

from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum
from typing import Any, ClassVar, Dict, Type, Union

from .call_type import FloorIndicator


class FloorSubtype(Enum):
    """Subtype tag used to dispatch floor messages."""
    REQUEST = "request"
    GRANTED = "granted"
    DENY = "deny"
    RELEASE = "release"
    IDLE = "idle"
    TAKEN = "taken"
    REVOKE = "revoke"
    QUEUE_POSITION_REQUEST = "queue_position_request"
    QUEUE_POSITION_INFO = "queue_position_info"
    ACK = "ack"


class DenyCause(IntEnum):
    """Reject causes carried in Floor Deny."""
    ANOTHER_HAS_PERMISSION = 101
    INTERNAL_ERROR = 102
    ONLY_ONE_PARTICIPANT = 103
    RETRY_AFTER_NOT_EXPIRED = 104
    RECEIVE_ONLY = 105
    NO_RESOURCES = 106
    QUEUE_FULL = 107
    LOCAL = 255


class RevokeCause(IntEnum):
    """Reject causes carried in Floor Revoke."""
    ONLY_ONE_PARTICIPANT = 1
    MEDIA_BURST_TOO_LONG = 2
    NO_PERMISSION = 3
    PREEMPTED = 4
    NO_RESOURCES = 6
    CALL_RELEASED = 255


@dataclass
class FloorMessage:
    """Base class for all floor messages."""
    subtype: ClassVar[FloorSubtype]
    ack_required: bool = field(default=False, kw_only=True)

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {"subtype": self.subtype.value}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, FloorIndicator):
                value = [flag.name for flag in FloorIndicator if flag and flag in value]
            elif isinstance(value, Enum):
                value = value.value
            result[f.name] = value
        return result

    def __str__(self) -> str:
        parts = [f"{f.name}={getattr(self, f.name)!s}" for f in fields(self) if f.name != "ack_required"]
        return f"{self.name}({', '.join(parts)})"


@dataclass
class FloorRequest(FloorMessage):
    """Participant asks for permission to send media."""
    subtype: ClassVar[FloorSubtype] = FloorSubtype.REQUEST
    ssrc: int
    priority: int = 0
    indicator: FloorIndicator = FloorIndicator.NORMAL_CALL

    @property
    def queueing(self) -> bool:
        return bool(self.indicator & FloorIndicator.QUEUEING_SUPPORTED)


@dataclass
class FloorGranted(FloorMessage):
    """Arbitrator grants the floor; duration is the maximum hold time."""
    subtype: ClassVar[FloorSubtype] = FloorSubtype.GRANTED
    ssrc: int
    priority: int = 0
    duration: float = 0.0
    indicator: FloorIndicator = FloorIndicator.NORMAL_CALL


@dataclass
class FloorDeny(FloorMessage):
    subtype: ClassVar[FloorSubtype] = FloorSubtype.DENY
    ssrc: int
    cause: DenyCause = DenyCause.ANOTHER_HAS_PERMISSION


@dataclass
class FloorRelease(FloorMessage):
    subtype: ClassVar[FloorSubtype] = FloorSubtype.RELEASE
    ssrc: int
    indicator: FloorIndicator = FloorIndicator.NONE


@dataclass
class FloorIdle(FloorMessage):
    subtype: ClassVar[FloorSubtype] = FloorSubtype.IDLE
    indicator: FloorIndicator = FloorIndicator.NONE


@dataclass
class FloorTaken(FloorMessage):
    """Announces the member currently holding the floor."""
    subtype: ClassVar[FloorSubtype] = FloorSubtype.TAKEN
    ssrc: int
    indicator: FloorIndicator = FloorIndicator.NONE


@dataclass
class FloorRevoke(FloorMessage):
    subtype: ClassVar[FloorSubtype] = FloorSubtype.REVOKE
    cause: RevokeCause = RevokeCause.PREEMPTED


@dataclass
class FloorQueuePositionRequest(FloorMessage):
    subtype: ClassVar[FloorSubtype] = FloorSubtype.QUEUE_POSITION_REQUEST
    ssrc: int


@dataclass
class FloorQueuePositionInfo(FloorMessage):
    """Queue rank (1-based) of a queued member."""
    subtype: ClassVar[FloorSubtype] = FloorSubtype.QUEUE_POSITION_INFO
    ssrc: int
    position: int = 0
    priority: int = 0


@dataclass
class FloorAck(FloorMessage):
    subtype: ClassVar[FloorSubtype] = FloorSubtype.ACK
    ssrc: int
    acked_subtype: FloorSubtype = FloorSubtype.GRANTED


AnyFloorMessage = Union[
    FloorRequest,
    FloorGranted,
    FloorDeny,
    FloorRelease,
    FloorIdle,
    FloorTaken,
    FloorRevoke,
    FloorQueuePositionRequest,
    FloorQueuePositionInfo,
    FloorAck,
]

MESSAGE_TYPES: Dict[FloorSubtype, Type[FloorMessage]] = {
    cls.subtype: cls
    for cls in (
        FloorRequest,
        FloorGranted,
        FloorDeny,
        FloorRelease,
        FloorIdle,
        FloorTaken,
        FloorRevoke,
        FloorQueuePositionRequest,
        FloorQueuePositionInfo,
        FloorAck,
    )
}


def _parse_indicator(value: Any) -> FloorIndicator:
    indicator = FloorIndicator.NONE
    for flag_name in value or []:
        indicator |= FloorIndicator[flag_name]
    return indicator


def parse_message(data: Dict[str, Any]) -> FloorMessage:
    """
    Parse a dictionary into a typed floor message.

    Raises:
        ValueError: If the subtype is unknown or a field is invalid
    """
    try:
        subtype = FloorSubtype(data.get("subtype"))
    except ValueError:
        raise ValueError(f"Unknown floor message subtype: {data.get('subtype')}") from None

    cls = MESSAGE_TYPES[subtype]
    kwargs: Dict[str, Any] = {}
    try:
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            if f.name == "indicator":
                value = _parse_indicator(value)
            elif f.name == "cause":
                value = DenyCause(value) if cls is FloorDeny else RevokeCause(value)
            elif f.name == "acked_subtype":
                value = FloorSubtype(value)
            kwargs[f.name] = value
        return cls(**kwargs)
    except (KeyError, TypeError) as e:
        raise ValueError(f"Invalid {subtype.value} message: {e}") from e
