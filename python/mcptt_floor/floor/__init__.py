"""Floor control state machines."""
from .preemption import is_preemptive
from .notifications import StateChange, GrantNotification, DenyNotification, FailureNotification
from .participant_states import ParticipantStateId
from .participant import FloorParticipant
from .towards_participant import TowardsParticipant
from .dual_control import DualFloorControl, DualFloorState
from .arbitrator_states import ArbitratorStateId
from .arbitrator import FloorArbitrator

__all__ = [
    "is_preemptive",
    "StateChange",
    "GrantNotification",
    "DenyNotification",
    "FailureNotification",
    "ParticipantStateId",
    "FloorParticipant",
    "TowardsParticipant",
    "DualFloorControl",
    "DualFloorState",
    "ArbitratorStateId",
    "FloorArbitrator",
]
