"""
Floor arbitrator.

Central per-call authority deciding who may send media: grants, denies,
queues and revokes the floor, applies the preemption rule and drives the
arbitrator timers (T1, T2, T3, T4, T7, T20) and counters (C7, C20).
"""

import logging
from typing import Any, Callable, Dict, Iterable, Optional, Union

from ..config.settings import FloorConfig
from ..core.counter import Counter
from ..core.errors import ParticipantNotFoundError
from ..core.floor_queue import FloorQueue
from ..core.observers import Hook
from ..core.scheduler import LogicalScheduler
from ..core.timer import Timer
from ..protocol.call_type import (
    CallType,
    FloorIndicator,
    indicator_for_class,
    priority_class_of,
    with_call_type,
)
from ..protocol.messages import (
    DenyCause,
    FloorAck,
    FloorDeny,
    FloorGranted,
    FloorMessage,
    FloorQueuePositionInfo,
    FloorQueuePositionRequest,
    FloorRelease,
    FloorRequest,
    FloorRevoke,
    FloorSubtype,
    FloorTaken,
    RevokeCause,
)
from ..protocol.rtp import RTPPacket
from .arbitrator_states import ARBITRATOR_STATES, ArbitratorState, ArbitratorStateId
from .dual_control import DualFloorControl
from .notifications import StateChange
from .preemption import is_preemptive
from .towards_participant import TowardsParticipant

logger = logging.getLogger("mcptt.arbitrator")


class FloorArbitrator:
    """
    Arbitrator state machine for one call.

    Hooks:
        state_changed(StateChange) - main machine and dual floor control
        tx(call_id, destination, FloorMessage) - destination is an SSRC,
            "all" or "all except <ssrc>"
        rx(call_id, ssrc, FloorMessage)
        media_relayed(call_id, RTPPacket)
    """

    def __init__(
        self,
        call_id: int,
        call_type: CallType,
        scheduler: LogicalScheduler,
        config: Optional[FloorConfig] = None,
        expected_ssrcs: Optional[Iterable[int]] = None,
    ):
        """
        Initialize arbitrator.

        Args:
            call_id: Call identifier
            call_type: Negotiated call type
            scheduler: Logical clock driving the timers
            config: Timer, counter and queueing configuration
            expected_ssrcs: Members that must be ready before requests are
                accepted (None to accept as soon as anyone joins)
        """
        self.config = config or FloorConfig()
        self.call_id = call_id
        self.call_type = call_type
        self.scheduler = scheduler
        self.expected_ssrcs = set(expected_ssrcs) if expected_ssrcs is not None else None

        self.indicator = call_type.indicator
        if self.config.queueing_enabled:
            self.indicator |= FloorIndicator.QUEUEING_SUPPORTED

        self.participants: Dict[int, TowardsParticipant] = {}
        self.queue = FloorQueue(capacity=self.config.queue_capacity)
        self.dual_control = DualFloorControl(self)

        self.stored_ssrc: Optional[int] = None
        self.stored_priority = 0
        self.stored_indicator = FloorIndicator.NONE
        self.preemptor: Optional[FloorRequest] = None
        self.revoke_cause = RevokeCause.PREEMPTED
        # Unacknowledged Granted per SSRC, each with its own C20; T20 is shared.
        self.awaiting_acks: Dict[int, Counter] = {}

        self.t1 = Timer("T1", scheduler, self.config.t1, self._expiry("expiry_of_t1"))
        self.t2 = Timer("T2", scheduler, self.config.t2, self._expiry("expiry_of_t2"))
        self.t3 = Timer("T3", scheduler, self.config.t3, self._expiry("expiry_of_t3"))
        self.t4 = Timer("T4", scheduler, self.config.t4, self._expiry("expiry_of_t4"))
        self.t7 = Timer("T7", scheduler, self.config.t7, self._expiry("expiry_of_t7"))
        self.t20 = Timer("T20", scheduler, self.config.t20, self._expiry("expiry_of_t20"))
        self.c7 = Counter("C7", self.config.c7)

        self.state_changed = Hook("arbitrator.state_changed")
        self.tx = Hook("arbitrator.tx")
        self.rx = Hook("arbitrator.rx")
        self.media_relayed = Hook("arbitrator.media_relayed")

        self._state: ArbitratorState = ARBITRATOR_STATES[ArbitratorStateId.START_STOP]

    @property
    def now(self) -> float:
        return self.scheduler.now

    @property
    def state(self) -> ArbitratorStateId:
        return self._state.id

    @property
    def timers(self):
        return (self.t1, self.t2, self.t3, self.t4, self.t7, self.t20)

    @property
    def holders(self) -> set:
        """SSRCs currently allowed to send media."""
        holders = set()
        if self.stored_ssrc is not None:
            holders.add(self.stored_ssrc)
        if self.dual_control.is_started:
            holders.add(self.dual_control.stored_ssrc)
        return holders

    @property
    def all_ready(self) -> bool:
        if self.expected_ssrcs is None:
            return True
        return all(
            ssrc in self.participants and self.participants[ssrc].is_ready
            for ssrc in self.expected_ssrcs
        )

    # State machine plumbing

    def change_state(self, state_id: ArbitratorStateId) -> None:
        old = self._state
        new = ARBITRATOR_STATES[state_id]
        old.exit(self)
        self._state = new
        logger.info(f"{self.now:.3f}s: call {self.call_id} arbitrator {old.name} -> {new.name}")
        self.notify_state_change("FloorArbitrator", old.name, new.name)
        new.enter(self)

    def notify_state_change(self, machine: str, from_state: str, to_state: str) -> None:
        self.state_changed.emit(
            StateChange(
                ssrc=None,
                call_id=self.call_id,
                machine=machine,
                from_state=from_state,
                to_state=to_state,
                time=self.now,
            )
        )

    def _expiry(self, handler_name: str) -> Callable[[], None]:
        def fire() -> None:
            getattr(self._state, handler_name)(self)
        return fire

    def ignore(self, event: Any) -> None:
        logger.debug(f"{self.now:.3f}s: call {self.call_id} ignoring {event} in {self._state.name}")

    def stop(self) -> None:
        """Stop every timer."""
        for timer in self.timers:
            timer.stop()
        self.awaiting_acks.clear()

    def dispose(self) -> None:
        for timer in self.timers:
            timer.dispose()

    # Sending

    def send_to(self, ssrc: int, message: FloorMessage) -> bool:
        participant = self.participants.get(ssrc)
        if participant is None:
            logger.warning(f"{self.now:.3f}s: call {self.call_id} SSRC {ssrc} not in roster, {message} dropped")
            return False
        self.tx.emit(self.call_id, ssrc, message)
        return participant.send(message)

    def send_to_all(self, message: FloorMessage) -> None:
        self.tx.emit(self.call_id, "all", message)
        for participant in list(self.participants.values()):
            participant.send(message)

    def send_to_all_except(self, ssrc: int, message: FloorMessage) -> None:
        self.tx.emit(self.call_id, f"all except {ssrc}", message)
        for participant in list(self.participants.values()):
            if participant.ssrc != ssrc:
                participant.send(message)

    def granted_message(self) -> FloorGranted:
        return FloorGranted(
            ssrc=self.stored_ssrc,
            priority=self.stored_priority,
            duration=self.t2.delay,
            indicator=self.indicator,
            ack_required=self.config.ack_required,
        )

    def send_revoke(self) -> None:
        if self.stored_ssrc is not None:
            self.send_to(self.stored_ssrc, FloorRevoke(cause=self.revoke_cause))

    def send_queue_position(self, ssrc: int) -> bool:
        position = self.queue.position_of(ssrc)
        if position is None:
            return False
        entry = next(e for e in self.queue if e.ssrc == ssrc)
        self.send_to(ssrc, FloorQueuePositionInfo(ssrc=ssrc, position=position, priority=entry.priority))
        return True

    def send_preemptor_position(self) -> None:
        """The waiting preemptor is next in line ahead of the queue."""
        request = self.preemptor
        self.send_to(
            request.ssrc,
            FloorQueuePositionInfo(ssrc=request.ssrc, position=1, priority=request.priority),
        )

    def send_queue_positions(self) -> None:
        for position, entry in enumerate(self.queue, start=1):
            self.send_to(
                entry.ssrc,
                FloorQueuePositionInfo(ssrc=entry.ssrc, position=position, priority=entry.priority),
            )

    # Floor decisions

    def is_preemptive(self, request: FloorRequest) -> bool:
        if self.config.audio_cut_in:
            return request.ssrc != self.stored_ssrc
        return is_preemptive(request.indicator, request.priority, self.indicator, self.stored_priority)

    def upgrade_indicator(self, indicator: FloorIndicator) -> None:
        """Raise the call to the class of a granted request (emergency, imminent peril)."""
        try:
            requested = priority_class_of(indicator)
        except ValueError:
            return
        if requested > priority_class_of(self.indicator):
            self.indicator = with_call_type(self.indicator, indicator_for_class(requested))
            logger.info(f"{self.now:.3f}s: call {self.call_id} upgraded to {requested.name}")

    def grant(self, ssrc: int, priority: int, indicator: FloorIndicator) -> None:
        """Make ssrc the holder and move to Taken."""
        self.stored_ssrc = ssrc
        self.stored_priority = priority
        self.stored_indicator = indicator
        self.upgrade_indicator(indicator)

        logger.info(f"{self.now:.3f}s: call {self.call_id} floor granted to SSRC {ssrc} (priority {priority})")
        self.send_to(ssrc, self.granted_message())
        self.await_ack(ssrc)
        self.send_to_all_except(ssrc, FloorTaken(ssrc=ssrc, indicator=self.indicator))
        self.change_state(ArbitratorStateId.TAKEN)

    def grant_next(self) -> None:
        """Grant the waiting preemptor, else the head of the queue."""
        if self.preemptor is not None:
            request, self.preemptor = self.preemptor, None
            if request.ssrc in self.participants:
                self.grant(request.ssrc, request.priority, request.indicator)
                return

        entry = self.queue.dequeue_highest()
        while entry is not None and entry.ssrc not in self.participants:
            entry = self.queue.dequeue_highest()
        if entry is not None:
            self.grant(entry.ssrc, entry.priority, entry.indicator)

    def clear_holder(self) -> None:
        self.stored_ssrc = None
        self.stored_priority = 0
        self.stored_indicator = FloorIndicator.NONE
        self.awaiting_acks.clear()
        self.t20.stop()
        if self.dual_control.is_started:
            self.dual_control.stop()

    def deny(self, ssrc: int, cause: DenyCause) -> None:
        logger.info(f"{self.now:.3f}s: call {self.call_id} request from SSRC {ssrc} denied ({cause.name})")
        self.send_to(ssrc, FloorDeny(ssrc=ssrc, cause=cause))

    def deny_if_receive_only(self, request: FloorRequest) -> bool:
        if self.participants[request.ssrc].receive_only:
            self.deny(request.ssrc, DenyCause.RECEIVE_ONLY)
            return True
        return False

    def queue_or_deny(self, request: FloorRequest) -> None:
        if request.ssrc in self.queue:
            self.send_queue_position(request.ssrc)
            return

        if not (self.config.queueing_enabled and request.queueing):
            self.deny(request.ssrc, DenyCause.ANOTHER_HAS_PERMISSION)
            return

        if not self.queue.enqueue(request.ssrc, request.priority, request.indicator):
            self.deny(request.ssrc, DenyCause.QUEUE_FULL)
            return

        logger.info(
            f"{self.now:.3f}s: call {self.call_id} SSRC {request.ssrc} queued at "
            f"{self.queue.position_of(request.ssrc)}"
        )
        self.send_queue_position(request.ssrc)
        if not self.t4.is_running:
            self.t4.start()

    def promote_dual_holder(self) -> None:
        self.stop_awaiting_ack(self.stored_ssrc)
        ssrc, priority, indicator = self.dual_control.promote()
        self.stored_ssrc = ssrc
        self.stored_priority = priority
        self.stored_indicator = indicator
        logger.info(f"{self.now:.3f}s: call {self.call_id} SSRC {ssrc} promoted to primary holder")
        self.send_to_all(FloorTaken(ssrc=ssrc, indicator=self.indicator))

    def release_from_queue(self, ssrc: int) -> None:
        """A queued member gave up; confirm with the current holder."""
        if self.queue.remove(ssrc) is None:
            self.ignore(f"Release from {ssrc}")
            return
        if not len(self.queue):
            self.t4.stop()
        if self.stored_ssrc is not None:
            self.send_to(ssrc, FloorTaken(ssrc=self.stored_ssrc, indicator=self.indicator))

    def release_in_taken(self, ssrc: int) -> None:
        dual = self.dual_control
        if dual.is_started and ssrc == dual.stored_ssrc:
            self.stop_awaiting_ack(ssrc)
            dual.release()
        elif ssrc == self.stored_ssrc:
            if dual.is_started:
                self.promote_dual_holder()
                self.t2.start()
            else:
                self.change_state(ArbitratorStateId.IDLE)
        else:
            self.release_from_queue(ssrc)

    def end_revocation(self) -> None:
        """Holder released or T3 ran out while revoking."""
        if self.preemptor is None and self.dual_control.is_started:
            self.promote_dual_holder()
            self.change_state(ArbitratorStateId.TAKEN)
        else:
            self.change_state(ArbitratorStateId.IDLE)

    def await_ack(self, ssrc: int) -> None:
        """Track a Granted sent to ssrc until it is acknowledged."""
        if not self.config.ack_required:
            return
        counter = Counter("C20", self.config.c20)
        counter.reset(1)
        self.awaiting_acks[ssrc] = counter
        if not self.t20.is_running:
            self.t20.start()

    def stop_awaiting_ack(self, ssrc: Optional[int]) -> None:
        if self.awaiting_acks.pop(ssrc, None) is not None and not self.awaiting_acks:
            self.t20.stop()

    def receive_ack(self, ack: FloorAck) -> None:
        if ack.acked_subtype is FloorSubtype.GRANTED and ack.ssrc in self.awaiting_acks:
            self.stop_awaiting_ack(ack.ssrc)
        else:
            logger.debug(f"{self.now:.3f}s: call {self.call_id} Ack from {ack.ssrc} for {ack.acked_subtype.value}")

    def retransmit_granted(self) -> None:
        """T20 expired: resend every unacknowledged Granted, or take the floor back after C20."""
        for ssrc, counter in list(self.awaiting_acks.items()):
            if self.awaiting_acks.get(ssrc) is not counter:
                continue

            if counter.is_limit_reached:
                logger.warning(f"{self.now:.3f}s: call {self.call_id} SSRC {ssrc} never acknowledged Granted")
                self.stop_awaiting_ack(ssrc)
                self.release_in_taken(ssrc)
                continue

            dual = self.dual_control
            if dual.is_started and ssrc == dual.stored_ssrc:
                self.send_to(ssrc, dual.granted_message())
            else:
                self.send_to(ssrc, self.granted_message())
            counter.increment()

        if self.awaiting_acks and self._state.id is ArbitratorStateId.TAKEN and not self.t20.is_running:
            self.t20.start()

    # Call control interface

    def add_participant(self, participant: TowardsParticipant) -> None:
        self.participants[participant.ssrc] = participant

    def call_initialized(self, participant: TowardsParticipant) -> None:
        """A member finished call setup."""
        self.participants.setdefault(participant.ssrc, participant)
        participant.is_ready = True
        self._state.call_initialized(self, participant)

    def implicit_floor_request(self, participant: TowardsParticipant) -> None:
        """Grant the call originator without an explicit request."""
        self._state.implicit_floor_request(self, participant)

    def call_release1(self) -> None:
        self._state.call_release1(self)

    def call_release2(self) -> None:
        self._state.call_release2(self)

    def client_release(self, participant: Union[TowardsParticipant, int]) -> None:
        """Remove a member from the call; a holder leaving counts as a Release."""
        ssrc = getattr(participant, "ssrc", participant)
        towards = self.participants.pop(ssrc, None)
        if towards is None:
            logger.warning(f"{self.now:.3f}s: call {self.call_id} client release for unknown SSRC {ssrc}")
            return

        logger.info(f"{self.now:.3f}s: call {self.call_id} SSRC {ssrc} left")
        if self.preemptor is not None and self.preemptor.ssrc == ssrc:
            self.preemptor = None
        self.stop_awaiting_ack(ssrc)

        if ssrc in self.holders:
            self._state.receive_floor_release(self, FloorRelease(ssrc=ssrc))
        elif self.queue.remove(ssrc) is not None and not len(self.queue):
            self.t4.stop()

        if self._state.id is ArbitratorStateId.INITIALISING and self.all_ready:
            self.change_state(ArbitratorStateId.IDLE)

    # Incoming traffic

    def receive(self, message: Union[FloorMessage, RTPPacket]) -> None:
        """Dispatch a message arriving from a participant."""
        if isinstance(message, RTPPacket):
            self.receive_media(message)
            return

        ssrc = getattr(message, "ssrc", None)
        self.rx.emit(self.call_id, ssrc, message)

        if message.ack_required and message.subtype is not FloorSubtype.ACK and ssrc is not None:
            self.send_to(ssrc, FloorAck(ssrc=ssrc, acked_subtype=message.subtype))

        subtype = message.subtype
        if subtype is FloorSubtype.REQUEST:
            self.receive_floor_request(message)
        elif subtype is FloorSubtype.RELEASE:
            self.receive_floor_release(message)
        elif subtype is FloorSubtype.QUEUE_POSITION_REQUEST:
            self.receive_floor_queue_position_request(message)
        elif subtype is FloorSubtype.ACK:
            self.receive_floor_ack(message)
        else:
            logger.warning(f"{self.now:.3f}s: call {self.call_id} unexpected {message} from participant")

    def receive_floor_request(self, msg: FloorRequest) -> None:
        """
        Handle a floor request.

        Raises:
            ParticipantNotFoundError: If the requester is not in the roster
        """
        participant = self.participants.get(msg.ssrc)
        if participant is None:
            raise ParticipantNotFoundError(f"Call {self.call_id}: floor request from unknown SSRC {msg.ssrc}")

        try:
            priority_class_of(msg.indicator)
        except ValueError:
            logger.warning(f"{self.now:.3f}s: call {self.call_id} malformed request from {msg.ssrc}: {msg}")
            return

        participant.priority = msg.priority
        self._state.receive_floor_request(self, msg)

    def receive_floor_release(self, msg: FloorRelease) -> None:
        self._state.receive_floor_release(self, msg)

    def receive_floor_queue_position_request(self, msg: FloorQueuePositionRequest) -> None:
        self._state.receive_floor_queue_position_request(self, msg)

    def receive_floor_ack(self, msg: FloorAck) -> None:
        self._state.receive_floor_ack(self, msg)

    def receive_media(self, packet: RTPPacket) -> None:
        """Relay media from a floor holder to every other member."""
        if packet.ssrc not in self.holders:
            logger.warning(f"{self.now:.3f}s: call {self.call_id} media from non-holder SSRC {packet.ssrc} dropped")
            return
        self.media_relayed.emit(self.call_id, packet)
        for participant in list(self.participants.values()):
            if participant.ssrc != packet.ssrc:
                participant.send(packet)

    def __repr__(self) -> str:
        return f"FloorArbitrator(call={self.call_id}, state={self._state.name}, holder={self.stored_ssrc})"
