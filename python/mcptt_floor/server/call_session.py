"""Call session state for multi-call support."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, TYPE_CHECKING

from ..protocol.call_type import CallType, PriorityClass

if TYPE_CHECKING:
    from ..floor.arbitrator import FloorArbitrator
    from ..floor.participant import FloorParticipant


@dataclass
class CallSession:
    """An active group or private call with its floor control machines."""
    call_id: int
    call_type: CallType
    originator: Optional[int] = None
    members: List[int] = field(default_factory=list)
    start_time: float = 0.0
    arbitrator: Optional["FloorArbitrator"] = None
    # Client-side machines joined to this call, by SSRC
    participants: Dict[int, "FloorParticipant"] = field(default_factory=dict)
    released: bool = False

    @property
    def priority_class(self) -> PriorityClass:
        return self.call_type.priority_class

    def add_participant(self, participant: "FloorParticipant") -> None:
        self.participants[participant.ssrc] = participant

    def timers(self):
        """Every timer owned by the call's machines."""
        if self.arbitrator is not None:
            yield from self.arbitrator.timers
        for participant in self.participants.values():
            yield from participant.timers
