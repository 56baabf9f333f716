"""
Call types, floor indicators and priority classes.

A call's type determines which call-type bit is set in the floor indicator
of every message, and the indicator in turn determines the priority class
used by the preemption rule.
"""

from enum import Enum, Flag, IntEnum, auto


class FloorIndicator(Flag):
    """Floor indicator bits carried in floor messages."""
    NONE = 0
    NORMAL_CALL = auto()
    BROADCAST_CALL = auto()
    SYSTEM_CALL = auto()
    EMERGENCY_CALL = auto()
    IMMINENT_CALL = auto()
    QUEUEING_SUPPORTED = auto()
    DUAL_FLOOR = auto()

    @property
    def call_type_bits(self) -> "FloorIndicator":
        return self & CALL_TYPE_BITS


CALL_TYPE_BITS = (
    FloorIndicator.NORMAL_CALL
    | FloorIndicator.BROADCAST_CALL
    | FloorIndicator.SYSTEM_CALL
    | FloorIndicator.EMERGENCY_CALL
    | FloorIndicator.IMMINENT_CALL
)


class PriorityClass(IntEnum):
    """Call-type precedence, lowest first."""
    NORMAL = 0
    IMMINENT = 1
    EMERGENCY = 2


class CallType(Enum):
    """Call types negotiated by call control."""
    BASIC_GROUP = "basic_group"
    BROADCAST_GROUP = "broadcast_group"
    EMERGENCY_GROUP = "emergency_group"
    IMMINENT_PERIL_GROUP = "imminent_peril_group"
    PRIVATE = "private"
    EMERGENCY_PRIVATE = "emergency_private"

    @property
    def indicator(self) -> FloorIndicator:
        """Call-type bit to place in floor messages for this call."""
        return _CALL_TYPE_INDICATOR[self]

    @property
    def priority_class(self) -> PriorityClass:
        return priority_class_of(self.indicator)

    @property
    def is_broadcast(self) -> bool:
        return self is CallType.BROADCAST_GROUP


_CALL_TYPE_INDICATOR = {
    CallType.BASIC_GROUP: FloorIndicator.NORMAL_CALL,
    CallType.BROADCAST_GROUP: FloorIndicator.BROADCAST_CALL,
    CallType.EMERGENCY_GROUP: FloorIndicator.EMERGENCY_CALL,
    CallType.IMMINENT_PERIL_GROUP: FloorIndicator.IMMINENT_CALL,
    CallType.PRIVATE: FloorIndicator.NORMAL_CALL,
    CallType.EMERGENCY_PRIVATE: FloorIndicator.EMERGENCY_CALL,
}


def priority_class_of(indicator: FloorIndicator) -> PriorityClass:
    """
    Map an indicator to its priority class.

    The highest class indicated wins if several call-type bits are set.

    Raises:
        ValueError: If no call-type bit is set
    """
    if indicator & FloorIndicator.EMERGENCY_CALL:
        return PriorityClass.EMERGENCY
    if indicator & FloorIndicator.IMMINENT_CALL:
        return PriorityClass.IMMINENT
    if indicator & (
        FloorIndicator.NORMAL_CALL | FloorIndicator.BROADCAST_CALL | FloorIndicator.SYSTEM_CALL
    ):
        return PriorityClass.NORMAL
    raise ValueError(f"No call type indicated in {indicator!r}")


def indicator_for_class(priority_class: PriorityClass) -> FloorIndicator:
    if priority_class is PriorityClass.EMERGENCY:
        return FloorIndicator.EMERGENCY_CALL
    if priority_class is PriorityClass.IMMINENT:
        return FloorIndicator.IMMINENT_CALL
    return FloorIndicator.NORMAL_CALL


def with_call_type(indicator: FloorIndicator, call_type_bit: FloorIndicator) -> FloorIndicator:
    """Replace the call-type bits of an indicator, keeping the other flags."""
    return (indicator & ~CALL_TYPE_BITS) | call_type_bit
