"""
Dual floor control.

Runs beside the arbitrator's main state machine. While the main floor is
taken, a preemptive request can be given a second, parallel floor instead
of revoking the holder; this controller owns that secondary slot.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional, Tuple

from ..protocol.call_type import FloorIndicator
from ..protocol.messages import FloorGranted, FloorRequest, FloorTaken

if TYPE_CHECKING:
    from .arbitrator import FloorArbitrator

logger = logging.getLogger("mcptt.dual_floor")


class DualFloorState(Enum):
    START_STOP = "StartStop"
    TAKEN = "Taken"


class DualFloorControl:
    """Secondary floor holder slot of one arbitrator."""

    def __init__(self, arbitrator: "FloorArbitrator"):
        self.arbitrator = arbitrator
        self.state = DualFloorState.START_STOP
        self.stored_ssrc: Optional[int] = None
        self.stored_priority = 0
        self.stored_indicator = FloorIndicator.NONE

    @property
    def is_started(self) -> bool:
        return self.state is DualFloorState.TAKEN

    def _change_state(self, state: DualFloorState) -> None:
        if state is self.state:
            return
        old = self.state
        self.state = state
        self.arbitrator.notify_state_change("DualFloorControl", old.value, state.value)

    def granted_message(self) -> FloorGranted:
        arb = self.arbitrator
        return FloorGranted(
            ssrc=self.stored_ssrc,
            priority=self.stored_priority,
            duration=arb.t2.delay,
            indicator=arb.indicator | FloorIndicator.DUAL_FLOOR,
            ack_required=arb.config.ack_required,
        )

    def start(self, request: FloorRequest) -> None:
        """Grant the requester a secondary floor alongside the current holder."""
        arb = self.arbitrator
        self.stored_ssrc = request.ssrc
        self.stored_priority = request.priority
        self.stored_indicator = request.indicator
        arb.upgrade_indicator(request.indicator)
        self._change_state(DualFloorState.TAKEN)

        logger.info(
            f"{arb.now:.3f}s: call {arb.call_id} dual floor granted to SSRC {request.ssrc} "
            f"(holder {arb.stored_ssrc})"
        )
        arb.send_to(request.ssrc, self.granted_message())
        arb.await_ack(request.ssrc)
        arb.send_to_all_except(
            request.ssrc,
            FloorTaken(ssrc=request.ssrc, indicator=arb.indicator | FloorIndicator.DUAL_FLOOR),
        )

    def release(self) -> None:
        """Secondary holder released; the primary holder keeps the floor."""
        arb = self.arbitrator
        ssrc = self.stored_ssrc
        self.stop()
        logger.info(f"{arb.now:.3f}s: call {arb.call_id} dual floor released by SSRC {ssrc}")
        if arb.stored_ssrc is not None:
            arb.send_to_all(FloorTaken(ssrc=arb.stored_ssrc, indicator=arb.indicator))

    def promote(self) -> Tuple[int, int, FloorIndicator]:
        """Hand the secondary holder over to become the primary holder."""
        holder = (self.stored_ssrc, self.stored_priority, self.stored_indicator)
        self.stop()
        return holder

    def stop(self) -> None:
        self.stored_ssrc = None
        self.stored_priority = 0
        self.stored_indicator = FloorIndicator.NONE
        self._change_state(DualFloorState.START_STOP)
