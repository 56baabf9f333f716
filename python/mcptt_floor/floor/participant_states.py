"""
Participant state handlers.

Each state is a stateless singleton; per-call data lives on the
FloorParticipant passed to every handler. Handlers not overridden by a
state ignore the event.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Dict

from ..protocol.call_type import FloorIndicator
from ..protocol.messages import (
    FloorDeny,
    FloorGranted,
    FloorIdle,
    FloorQueuePositionInfo,
    FloorRevoke,
    FloorTaken,
)
from ..protocol.rtp import RTPPacket

if TYPE_CHECKING:
    from .participant import FloorParticipant

logger = logging.getLogger("mcptt.participant")


class ParticipantStateId(Enum):
    START_STOP = "StartStop"
    IDLE = "Idle"
    PENDING_REQUEST = "PendingRequest"
    QUEUED = "Queued"
    HAS_PERMISSION = "HasPermission"
    PENDING_RELEASE = "PendingRelease"


class ParticipantState:
    """Base state: every event is an explicit no-op."""

    id: ParticipantStateId

    @property
    def name(self) -> str:
        return self.id.value

    def enter(self, p: "FloorParticipant") -> None:
        pass

    def exit(self, p: "FloorParticipant") -> None:
        pass

    # Call control
    def call_initialized(self, p: "FloorParticipant") -> None:
        p.ignore("call_initialized")

    def call_established(self, p: "FloorParticipant", granted: bool) -> None:
        pass

    # Local application
    def ptt_push(self, p: "FloorParticipant") -> None:
        p.ignore("ptt_push")

    def ptt_release(self, p: "FloorParticipant") -> None:
        p.ignore("ptt_release")

    def accept_grant(self, p: "FloorParticipant") -> None:
        p.ignore("accept_grant")

    def send_floor_queue_position_request(self, p: "FloorParticipant") -> None:
        p.ignore("send_floor_queue_position_request")

    def media_ready(self, p: "FloorParticipant", packet: RTPPacket) -> bool:
        logger.warning(
            f"{p.now:.3f}s: SSRC {p.ssrc} dropped media in {self.name} (no permission)"
        )
        return False

    # Floor messages
    def receive_floor_granted(self, p: "FloorParticipant", msg: FloorGranted) -> None:
        p.ignore(msg)

    def receive_floor_deny(self, p: "FloorParticipant", msg: FloorDeny) -> None:
        p.ignore(msg)

    def receive_floor_idle(self, p: "FloorParticipant", msg: FloorIdle) -> None:
        pass

    def receive_floor_taken(self, p: "FloorParticipant", msg: FloorTaken) -> None:
        pass

    def receive_floor_revoke(self, p: "FloorParticipant", msg: FloorRevoke) -> None:
        p.ignore(msg)

    def receive_floor_queue_position_info(
        self, p: "FloorParticipant", msg: FloorQueuePositionInfo
    ) -> None:
        p.ignore(msg)

    # Timers
    def expiry_of_t100(self, p: "FloorParticipant") -> None:
        pass

    def expiry_of_t101(self, p: "FloorParticipant") -> None:
        pass

    def expiry_of_t104(self, p: "FloorParticipant") -> None:
        pass

    def expiry_of_t132(self, p: "FloorParticipant") -> None:
        pass


class StartStopState(ParticipantState):
    """Not part of an active call."""

    id = ParticipantStateId.START_STOP

    def call_initialized(self, p: "FloorParticipant") -> None:
        if p.is_originator and p.implicit_request:
            # Wait for the implicit grant; T101 falls back to an explicit request.
            p.c101.reset(1)
            p.t101.start()
            p.change_state(ParticipantStateId.PENDING_REQUEST)
        else:
            p.change_state(ParticipantStateId.IDLE)

    def receive_floor_granted(self, p: "FloorParticipant", msg: FloorGranted) -> None:
        p.refuse_grant(msg)


class IdleState(ParticipantState):
    id = ParticipantStateId.IDLE

    def enter(self, p: "FloorParticipant") -> None:
        p.queue_position = None
        p.is_dual_floor = False
        p.is_overriding = False
        p.is_overridden = False

    def ptt_push(self, p: "FloorParticipant") -> None:
        p.start_request()
        p.change_state(ParticipantStateId.PENDING_REQUEST)

    def receive_floor_granted(self, p: "FloorParticipant", msg: FloorGranted) -> None:
        p.refuse_grant(msg)


class PendingRequestState(ParticipantState):
    """Request sent, waiting for Granted, Deny or a queue position."""

    id = ParticipantStateId.PENDING_REQUEST

    def exit(self, p: "FloorParticipant") -> None:
        p.t101.stop()

    def call_established(self, p: "FloorParticipant", granted: bool) -> None:
        if granted and p.is_originator:
            p.change_state(ParticipantStateId.HAS_PERMISSION)
            p.notify_granted(None)

    def ptt_release(self, p: "FloorParticipant") -> None:
        p.start_release()

    def receive_floor_granted(self, p: "FloorParticipant", msg: FloorGranted) -> None:
        if msg.indicator & FloorIndicator.DUAL_FLOOR:
            p.is_dual_floor = True
            p.is_overriding = True
        p.change_state(ParticipantStateId.HAS_PERMISSION)
        p.notify_granted(msg)

    def receive_floor_deny(self, p: "FloorParticipant", msg: FloorDeny) -> None:
        p.change_state(ParticipantStateId.IDLE)
        p.notify_denied(msg.cause)

    def receive_floor_queue_position_info(
        self, p: "FloorParticipant", msg: FloorQueuePositionInfo
    ) -> None:
        p.queue_position = msg.position
        p.change_state(ParticipantStateId.QUEUED)

    def expiry_of_t101(self, p: "FloorParticipant") -> None:
        p.retry_or_fail(p.c101, p.t101, p.send_request)


class QueuedState(ParticipantState):
    """
    Request queued by the arbitrator.

    A Granted received here is held until the user accepts it; T132 bounds
    how long the arbitrator is kept waiting.
    """

    id = ParticipantStateId.QUEUED

    def exit(self, p: "FloorParticipant") -> None:
        p.t104.stop()
        p.t132.stop()
        p.pending_grant = None

    def ptt_release(self, p: "FloorParticipant") -> None:
        p.start_release()

    def accept_grant(self, p: "FloorParticipant") -> None:
        grant = p.pending_grant
        if grant is None:
            p.ignore("accept_grant")
            return
        p.change_state(ParticipantStateId.HAS_PERMISSION)
        p.notify_granted(grant)

    def send_floor_queue_position_request(self, p: "FloorParticipant") -> None:
        p.send_queue_position_request()
        p.c104.reset(1)
        p.t104.start()

    def receive_floor_granted(self, p: "FloorParticipant", msg: FloorGranted) -> None:
        if p.pending_grant is not None:
            logger.debug(f"{p.now:.3f}s: SSRC {p.ssrc} duplicate queued grant")
            return
        p.t104.stop()
        p.pending_grant = msg
        p.t132.start()
        p.grant_pending.emit(p)

    def receive_floor_deny(self, p: "FloorParticipant", msg: FloorDeny) -> None:
        p.change_state(ParticipantStateId.IDLE)
        p.notify_denied(msg.cause)

    def receive_floor_queue_position_info(
        self, p: "FloorParticipant", msg: FloorQueuePositionInfo
    ) -> None:
        p.queue_position = msg.position
        p.t104.stop()

    def expiry_of_t104(self, p: "FloorParticipant") -> None:
        p.retry_or_fail(p.c104, p.t104, p.send_queue_position_request)

    def expiry_of_t132(self, p: "FloorParticipant") -> None:
        logger.info(f"{p.now:.3f}s: SSRC {p.ssrc} queued grant not accepted, releasing")
        p.send_release()
        p.change_state(ParticipantStateId.IDLE)


class HasPermissionState(ParticipantState):
    id = ParticipantStateId.HAS_PERMISSION

    def ptt_release(self, p: "FloorParticipant") -> None:
        p.start_release()

    def media_ready(self, p: "FloorParticipant", packet: RTPPacket) -> bool:
        return p.send(packet)

    def receive_floor_granted(self, p: "FloorParticipant", msg: FloorGranted) -> None:
        logger.debug(f"{p.now:.3f}s: SSRC {p.ssrc} duplicate Granted ignored")

    def receive_floor_idle(self, p: "FloorParticipant", msg: FloorIdle) -> None:
        logger.warning(f"{p.now:.3f}s: SSRC {p.ssrc} floor idle while holding, permission lost")
        p.change_state(ParticipantStateId.IDLE)

    def receive_floor_taken(self, p: "FloorParticipant", msg: FloorTaken) -> None:
        if msg.ssrc == p.ssrc:
            p.is_dual_floor = False
            p.is_overriding = False
            p.is_overridden = False
        elif msg.indicator & FloorIndicator.DUAL_FLOOR:
            p.is_overridden = True
        else:
            logger.warning(f"{p.now:.3f}s: SSRC {p.ssrc} floor taken by {msg.ssrc}, permission lost")
            p.change_state(ParticipantStateId.IDLE)

    def receive_floor_revoke(self, p: "FloorParticipant", msg: FloorRevoke) -> None:
        logger.info(f"{p.now:.3f}s: SSRC {p.ssrc} floor revoked ({msg.cause.name})")
        p.start_release()


class PendingReleaseState(ParticipantState):
    """Release sent, waiting for Idle or Taken."""

    id = ParticipantStateId.PENDING_RELEASE

    def exit(self, p: "FloorParticipant") -> None:
        p.t100.stop()

    def receive_floor_idle(self, p: "FloorParticipant", msg: FloorIdle) -> None:
        p.change_state(ParticipantStateId.IDLE)

    def receive_floor_taken(self, p: "FloorParticipant", msg: FloorTaken) -> None:
        p.change_state(ParticipantStateId.IDLE)

    def expiry_of_t100(self, p: "FloorParticipant") -> None:
        p.retry_or_fail(p.c100, p.t100, p.send_release)


PARTICIPANT_STATES: Dict[ParticipantStateId, ParticipantState] = {
    state.id: state
    for state in (
        StartStopState(),
        IdleState(),
        PendingRequestState(),
        QueuedState(),
        HasPermissionState(),
        PendingReleaseState(),
    )
}
