"""Floor control protocol: call types, messages and media packets."""
from .call_type import (
    CallType,
    FloorIndicator,
    PriorityClass,
    indicator_for_class,
    priority_class_of,
    with_call_type,
)
from .messages import (
    DenyCause,
    FloorAck,
    FloorDeny,
    FloorGranted,
    FloorIdle,
    FloorMessage,
    FloorQueuePositionInfo,
    FloorQueuePositionRequest,
    FloorRelease,
    FloorRequest,
    FloorRevoke,
    FloorSubtype,
    FloorTaken,
    RevokeCause,
    parse_message,
)
from .rtp import RTPPacket

__all__ = [
    "CallType",
    "FloorIndicator",
    "PriorityClass",
    "indicator_for_class",
    "priority_class_of",
    "with_call_type",
    "DenyCause",
    "FloorAck",
    "FloorDeny",
    "FloorGranted",
    "FloorIdle",
    "FloorMessage",
    "FloorQueuePositionInfo",
    "FloorQueuePositionRequest",
    "FloorRelease",
    "FloorRequest",
    "FloorRevoke",
    "FloorSubtype",
    "FloorTaken",
    "RevokeCause",
    "parse_message",
    "RTPPacket",
]
