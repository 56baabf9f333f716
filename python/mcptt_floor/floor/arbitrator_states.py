"""
Arbitrator state handlers.

States are stateless singletons; everything per call lives on the
FloorArbitrator. An event or timer expiry a state does not handle is an
explicit no-op.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Dict

from ..protocol.messages import (
    FloorAck,
    FloorIdle,
    FloorQueuePositionRequest,
    FloorRelease,
    FloorRequest,
    FloorRevoke,
    FloorTaken,
    RevokeCause,
)

if TYPE_CHECKING:
    from .arbitrator import FloorArbitrator
    from .towards_participant import TowardsParticipant

logger = logging.getLogger("mcptt.arbitrator")


class ArbitratorStateId(Enum):
    START_STOP = "StartStop"
    INITIALISING = "Initialising"
    IDLE = "Idle"
    TAKEN = "Taken"
    PENDING_REVOKE = "PendingRevoke"
    RELEASING = "Releasing"


class ArbitratorState:
    """Base state: every event is an explicit no-op, except CallRelease1."""

    id: ArbitratorStateId

    @property
    def name(self) -> str:
        return self.id.value

    def enter(self, arb: "FloorArbitrator") -> None:
        pass

    def exit(self, arb: "FloorArbitrator") -> None:
        pass

    # Call control
    def call_initialized(self, arb: "FloorArbitrator", participant: "TowardsParticipant") -> None:
        pass

    def implicit_floor_request(self, arb: "FloorArbitrator", participant: "TowardsParticipant") -> None:
        arb.ignore("implicit_floor_request")

    def call_release1(self, arb: "FloorArbitrator") -> None:
        arb.change_state(ArbitratorStateId.RELEASING)

    def call_release2(self, arb: "FloorArbitrator") -> None:
        arb.ignore("call_release2")

    # Floor messages
    def receive_floor_request(self, arb: "FloorArbitrator", msg: FloorRequest) -> None:
        arb.ignore(msg)

    def receive_floor_release(self, arb: "FloorArbitrator", msg: FloorRelease) -> None:
        arb.ignore(msg)

    def receive_floor_queue_position_request(
        self, arb: "FloorArbitrator", msg: FloorQueuePositionRequest
    ) -> None:
        arb.ignore(msg)

    def receive_floor_ack(self, arb: "FloorArbitrator", msg: FloorAck) -> None:
        arb.ignore(msg)

    # Timers
    def expiry_of_t1(self, arb: "FloorArbitrator") -> None:
        pass

    def expiry_of_t2(self, arb: "FloorArbitrator") -> None:
        pass

    def expiry_of_t3(self, arb: "FloorArbitrator") -> None:
        pass

    def expiry_of_t4(self, arb: "FloorArbitrator") -> None:
        pass

    def expiry_of_t7(self, arb: "FloorArbitrator") -> None:
        pass

    def expiry_of_t20(self, arb: "FloorArbitrator") -> None:
        pass


class StartStopState(ArbitratorState):
    id = ArbitratorStateId.START_STOP

    def call_initialized(self, arb: "FloorArbitrator", participant: "TowardsParticipant") -> None:
        arb.change_state(ArbitratorStateId.INITIALISING)

    def call_release1(self, arb: "FloorArbitrator") -> None:
        arb.ignore("call_release1")


class InitialisingState(ArbitratorState):
    """Waiting for every expected member to complete call setup."""

    id = ArbitratorStateId.INITIALISING

    def enter(self, arb: "FloorArbitrator") -> None:
        if arb.all_ready:
            arb.change_state(ArbitratorStateId.IDLE)

    def call_initialized(self, arb: "FloorArbitrator", participant: "TowardsParticipant") -> None:
        if arb.all_ready:
            arb.change_state(ArbitratorStateId.IDLE)


class IdleState(ArbitratorState):
    """No holder. A waiting preemptor or queued request is granted on entry."""

    id = ArbitratorStateId.IDLE

    def enter(self, arb: "FloorArbitrator") -> None:
        arb.clear_holder()
        arb.send_to_all(FloorIdle(indicator=arb.indicator))
        arb.c7.reset(1)
        arb.t7.start()
        arb.grant_next()

    def exit(self, arb: "FloorArbitrator") -> None:
        arb.t7.stop()

    def implicit_floor_request(self, arb: "FloorArbitrator", participant: "TowardsParticipant") -> None:
        arb.grant(participant.ssrc, participant.priority, arb.indicator)

    def receive_floor_request(self, arb: "FloorArbitrator", msg: FloorRequest) -> None:
        if arb.deny_if_receive_only(msg):
            return
        arb.grant(msg.ssrc, msg.priority, msg.indicator)

    def receive_floor_release(self, arb: "FloorArbitrator", msg: FloorRelease) -> None:
        # Nothing to release; confirm so the sender can leave PendingRelease.
        arb.send_to(msg.ssrc, FloorIdle(indicator=arb.indicator))

    def expiry_of_t7(self, arb: "FloorArbitrator") -> None:
        if arb.c7.is_limit_reached:
            logger.debug(f"{arb.now:.3f}s: call {arb.call_id} C7 reached, Idle announcements stopped")
            return
        arb.send_to_all(FloorIdle(indicator=arb.indicator))
        arb.c7.increment()
        arb.t7.start()


class TakenState(ArbitratorState):
    """A participant holds the floor (two in dual floor mode)."""

    id = ArbitratorStateId.TAKEN

    def enter(self, arb: "FloorArbitrator") -> None:
        arb.t7.stop()
        arb.t2.start()
        if len(arb.queue):
            arb.t4.start()
        if arb.awaiting_acks and not arb.t20.is_running:
            arb.t20.start()

    def exit(self, arb: "FloorArbitrator") -> None:
        arb.t2.stop()
        arb.t4.stop()
        arb.t20.stop()

    def receive_floor_request(self, arb: "FloorArbitrator", msg: FloorRequest) -> None:
        if arb.deny_if_receive_only(msg):
            return

        dual = arb.dual_control
        if msg.ssrc == arb.stored_ssrc:
            logger.debug(f"{arb.now:.3f}s: call {arb.call_id} holder {msg.ssrc} retransmitted request")
            arb.send_to(msg.ssrc, arb.granted_message())
        elif dual.is_started and msg.ssrc == dual.stored_ssrc:
            arb.send_to(msg.ssrc, dual.granted_message())
        elif not dual.is_started and arb.is_preemptive(msg):
            arb.queue.remove(msg.ssrc)
            if arb.config.dual_floor_supported and not arb.config.audio_cut_in:
                dual.start(msg)
            else:
                logger.info(
                    f"{arb.now:.3f}s: call {arb.call_id} SSRC {msg.ssrc} preempts {arb.stored_ssrc}"
                )
                arb.preemptor = msg
                arb.revoke_cause = RevokeCause.PREEMPTED
                arb.change_state(ArbitratorStateId.PENDING_REVOKE)
        else:
            arb.queue_or_deny(msg)

    def receive_floor_release(self, arb: "FloorArbitrator", msg: FloorRelease) -> None:
        arb.release_in_taken(msg.ssrc)

    def receive_floor_queue_position_request(
        self, arb: "FloorArbitrator", msg: FloorQueuePositionRequest
    ) -> None:
        if not arb.send_queue_position(msg.ssrc):
            arb.ignore(msg)

    def receive_floor_ack(self, arb: "FloorArbitrator", msg: FloorAck) -> None:
        arb.receive_ack(msg)

    def expiry_of_t2(self, arb: "FloorArbitrator") -> None:
        logger.info(f"{arb.now:.3f}s: call {arb.call_id} SSRC {arb.stored_ssrc} held the floor too long")
        arb.revoke_cause = RevokeCause.MEDIA_BURST_TOO_LONG
        arb.change_state(ArbitratorStateId.PENDING_REVOKE)

    def expiry_of_t4(self, arb: "FloorArbitrator") -> None:
        arb.send_queue_positions()
        if len(arb.queue):
            arb.t4.start()

    def expiry_of_t20(self, arb: "FloorArbitrator") -> None:
        arb.retransmit_granted()


class PendingRevokeState(ArbitratorState):
    """Revoke sent to the holder; waiting for its Release or T3."""

    id = ArbitratorStateId.PENDING_REVOKE

    def enter(self, arb: "FloorArbitrator") -> None:
        arb.send_revoke()
        arb.t1.start()
        arb.t3.start()

    def exit(self, arb: "FloorArbitrator") -> None:
        arb.t1.stop()
        arb.t3.stop()

    def receive_floor_request(self, arb: "FloorArbitrator", msg: FloorRequest) -> None:
        if arb.deny_if_receive_only(msg):
            return

        dual = arb.dual_control
        if msg.ssrc == arb.stored_ssrc:
            arb.ignore(msg)
        elif dual.is_started and msg.ssrc == dual.stored_ssrc:
            arb.send_to(msg.ssrc, dual.granted_message())
        elif arb.preemptor is not None and msg.ssrc == arb.preemptor.ssrc:
            # Retransmission while the holder is revoked: hold the requester in Queued.
            arb.preemptor = msg
            arb.send_preemptor_position()
        else:
            arb.queue_or_deny(msg)

    def receive_floor_release(self, arb: "FloorArbitrator", msg: FloorRelease) -> None:
        if msg.ssrc == arb.stored_ssrc:
            arb.end_revocation()
        elif arb.dual_control.is_started and msg.ssrc == arb.dual_control.stored_ssrc:
            arb.dual_control.release()
        elif arb.preemptor is not None and msg.ssrc == arb.preemptor.ssrc:
            logger.info(f"{arb.now:.3f}s: call {arb.call_id} preemptor {msg.ssrc} withdrew")
            arb.preemptor = None
            arb.send_to(msg.ssrc, FloorTaken(ssrc=arb.stored_ssrc, indicator=arb.indicator))
        else:
            arb.release_from_queue(msg.ssrc)

    def receive_floor_queue_position_request(
        self, arb: "FloorArbitrator", msg: FloorQueuePositionRequest
    ) -> None:
        if not arb.send_queue_position(msg.ssrc):
            arb.ignore(msg)

    def receive_floor_ack(self, arb: "FloorArbitrator", msg: FloorAck) -> None:
        arb.receive_ack(msg)

    def expiry_of_t1(self, arb: "FloorArbitrator") -> None:
        arb.send_revoke()
        arb.t1.start()

    def expiry_of_t3(self, arb: "FloorArbitrator") -> None:
        logger.warning(
            f"{arb.now:.3f}s: call {arb.call_id} SSRC {arb.stored_ssrc} did not release, floor taken back"
        )
        arb.end_revocation()


class ReleasingState(ArbitratorState):
    """Call being torn down; waiting for CallRelease2."""

    id = ArbitratorStateId.RELEASING

    def enter(self, arb: "FloorArbitrator") -> None:
        arb.stop()
        arb.queue.clear()
        arb.preemptor = None
        arb.dual_control.stop()
        arb.clear_holder()
        arb.send_to_all(FloorIdle(indicator=arb.indicator))

    def call_release1(self, arb: "FloorArbitrator") -> None:
        arb.ignore("call_release1")

    def call_release2(self, arb: "FloorArbitrator") -> None:
        arb.change_state(ArbitratorStateId.START_STOP)


ARBITRATOR_STATES: Dict[ArbitratorStateId, ArbitratorState] = {
    state.id: state
    for state in (
        StartStopState(),
        InitialisingState(),
        IdleState(),
        TakenState(),
        PendingRevokeState(),
        ReleasingState(),
    )
}
