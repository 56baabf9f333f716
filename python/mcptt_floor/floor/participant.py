"""
Floor participant.

Client-side floor control for one call: turns push-to-talk intents into
floor requests and releases, tracks the arbitrator's answers and gates
outgoing media on holding the floor.
"""

import logging
from typing import Any, Callable, Optional, Union

from ..config.settings import FloorConfig
from ..core.counter import Counter
from ..core.observers import Hook
from ..core.scheduler import LogicalScheduler
from ..core.timer import Timer
from ..network.channel import ChannelEndpoint
from ..protocol.call_type import CallType, FloorIndicator
from ..protocol.messages import (
    DenyCause,
    FloorAck,
    FloorGranted,
    FloorMessage,
    FloorQueuePositionRequest,
    FloorRelease,
    FloorRequest,
    FloorSubtype,
)
from ..protocol.rtp import RTPPacket
from .notifications import (
    DenyNotification,
    FailureNotification,
    GrantNotification,
    StateChange,
)
from .participant_states import PARTICIPANT_STATES, ParticipantState, ParticipantStateId

logger = logging.getLogger("mcptt.participant")


class FloorParticipant:
    """
    Participant state machine for one client in one call.

    Hooks:
        state_changed(StateChange)
        floor_granted(GrantNotification)
        grant_pending(FloorParticipant) - Granted received while queued
        floor_denied(DenyNotification)
        floor_failed(FailureNotification)
        message_sent(FloorMessage | RTPPacket)
        message_received(FloorMessage)
        media_received(RTPPacket)
    """

    def __init__(
        self,
        ssrc: int,
        call_id: int,
        call_type: CallType,
        scheduler: LogicalScheduler,
        config: Optional[FloorConfig] = None,
        is_originator: bool = False,
        implicit_request: bool = False,
        priority: Optional[int] = None,
    ):
        """
        Initialize participant.

        Args:
            ssrc: Participant identity used in every floor message
            call_id: Call this participant belongs to
            call_type: Call type, decides the indicator of requests
            scheduler: Logical clock driving the timers
            config: Timer and counter configuration
            is_originator: Participant started the call
            implicit_request: Originator expects an implicit grant
            priority: Floor priority (default from config)
        """
        self.config = config or FloorConfig()
        self.ssrc = ssrc
        self.call_id = call_id
        self.call_type = call_type
        self.scheduler = scheduler
        self.priority = self.config.participant_priority if priority is None else priority

        self.is_originator = is_originator
        self.implicit_request = implicit_request
        self.is_dual_floor = False
        self.is_overriding = False
        self.is_overridden = False

        self.port: Optional[ChannelEndpoint] = None
        self.current_talker: Optional[int] = None
        self.queue_position: Optional[int] = None
        self.pending_grant: Optional[FloorGranted] = None

        self.t100 = Timer("T100", scheduler, self.config.t100, self._expiry("expiry_of_t100"))
        self.t101 = Timer("T101", scheduler, self.config.t101, self._expiry("expiry_of_t101"))
        self.t104 = Timer("T104", scheduler, self.config.t104, self._expiry("expiry_of_t104"))
        self.t132 = Timer("T132", scheduler, self.config.t132, self._expiry("expiry_of_t132"))
        self.c100 = Counter("C100", self.config.c100)
        self.c101 = Counter("C101", self.config.c101)
        self.c104 = Counter("C104", self.config.c104)

        self.state_changed = Hook("participant.state_changed")
        self.floor_granted = Hook("participant.floor_granted")
        self.grant_pending = Hook("participant.grant_pending")
        self.floor_denied = Hook("participant.floor_denied")
        self.floor_failed = Hook("participant.floor_failed")
        self.message_sent = Hook("participant.message_sent")
        self.message_received = Hook("participant.message_received")
        self.media_received = Hook("participant.media_received")

        self._state: ParticipantState = PARTICIPANT_STATES[ParticipantStateId.START_STOP]

    @property
    def now(self) -> float:
        return self.scheduler.now

    @property
    def state(self) -> ParticipantStateId:
        return self._state.id

    @property
    def timers(self):
        return (self.t100, self.t101, self.t104, self.t132)

    @property
    def is_receive_only(self) -> bool:
        """Terminating members of a broadcast call may not request the floor."""
        return self.call_type.is_broadcast and not self.is_originator

    @property
    def has_permission(self) -> bool:
        return self._state.id is ParticipantStateId.HAS_PERMISSION

    @property
    def request_indicator(self) -> FloorIndicator:
        indicator = self.call_type.indicator
        if self.config.queueing_enabled:
            indicator |= FloorIndicator.QUEUEING_SUPPORTED
        return indicator

    def attach(self, port: ChannelEndpoint) -> None:
        """Connect to the arbitrator side of a link."""
        self.port = port
        port.on_receive(self.receive)

    # State machine plumbing

    def change_state(self, state_id: ParticipantStateId) -> None:
        old = self._state
        new = PARTICIPANT_STATES[state_id]
        old.exit(self)
        self._state = new
        logger.debug(f"{self.now:.3f}s: SSRC {self.ssrc} {old.name} -> {new.name}")
        self.state_changed.emit(
            StateChange(
                ssrc=self.ssrc,
                call_id=self.call_id,
                machine="FloorParticipant",
                from_state=old.name,
                to_state=new.name,
                time=self.now,
            )
        )
        new.enter(self)

    def _expiry(self, handler_name: str) -> Callable[[], None]:
        def fire() -> None:
            getattr(self._state, handler_name)(self)
        return fire

    def ignore(self, event: Any) -> None:
        logger.debug(f"{self.now:.3f}s: SSRC {self.ssrc} ignoring {event} in {self._state.name}")

    def send(self, message: Union[FloorMessage, RTPPacket]) -> bool:
        if self.port is None:
            logger.warning(f"{self.now:.3f}s: SSRC {self.ssrc} not attached, dropping {message}")
            return False
        self.message_sent.emit(message)
        return self.port.send(message)

    # Outgoing messages

    def send_request(self) -> None:
        self.send(FloorRequest(ssrc=self.ssrc, priority=self.priority, indicator=self.request_indicator))

    def send_release(self) -> None:
        self.send(FloorRelease(ssrc=self.ssrc, indicator=self.call_type.indicator))

    def send_queue_position_request(self) -> None:
        self.send(FloorQueuePositionRequest(ssrc=self.ssrc))

    def start_request(self) -> None:
        self.send_request()
        self.c101.reset(1)
        self.t101.start()

    def start_release(self) -> None:
        self.send_release()
        self.c100.reset(1)
        self.t100.start()
        self.change_state(ParticipantStateId.PENDING_RELEASE)

    def refuse_grant(self, msg: FloorGranted) -> None:
        """Release a floor granted to a participant that no longer asks for it."""
        logger.info(f"{self.now:.3f}s: SSRC {self.ssrc} not requesting, releasing stale {msg}")
        self.send_release()

    def retry_or_fail(self, counter: Counter, timer: Timer, resend: Callable[[], None]) -> None:
        """Resend on timer expiry, or give up once the counter is exhausted."""
        if counter.is_limit_reached:
            failure = FailureNotification(
                ssrc=self.ssrc,
                call_id=self.call_id,
                time=self.now,
                counter=counter.name,
                state=self._state.name,
            )
            logger.warning(
                f"{self.now:.3f}s: SSRC {self.ssrc} {counter.name} exhausted in {self._state.name}"
            )
            self.change_state(ParticipantStateId.IDLE)
            self.floor_failed.emit(failure)
            return

        resend()
        counter.increment()
        timer.start()

    def notify_granted(self, msg: Optional[FloorGranted]) -> None:
        logger.info(f"{self.now:.3f}s: SSRC {self.ssrc} has permission")
        self.floor_granted.emit(
            GrantNotification(
                ssrc=self.ssrc,
                call_id=self.call_id,
                time=self.now,
                priority=msg.priority if msg else self.priority,
                duration=msg.duration if msg else 0.0,
                dual_floor=self.is_dual_floor,
            )
        )

    def notify_denied(self, cause: DenyCause) -> None:
        logger.info(f"{self.now:.3f}s: SSRC {self.ssrc} denied ({cause.name})")
        self.floor_denied.emit(
            DenyNotification(ssrc=self.ssrc, call_id=self.call_id, time=self.now, cause=cause)
        )

    # Call control interface

    def call_initialized(self) -> None:
        self._state.call_initialized(self)

    def call_established(self, granted: bool, priority: int) -> None:
        """Record the negotiated priority; an originator may hold an implicit grant."""
        self.priority = priority
        self._state.call_established(self, granted)

    def call_release1(self) -> None:
        """Stop every timer and leave the call."""
        for timer in self.timers:
            timer.stop()
        self.pending_grant = None
        if self._state.id is not ParticipantStateId.START_STOP:
            self.change_state(ParticipantStateId.START_STOP)

    def call_release2(self) -> None:
        self.current_talker = None
        self.queue_position = None
        self.is_dual_floor = False
        self.is_overriding = False
        self.is_overridden = False

    def dispose(self) -> None:
        for timer in self.timers:
            timer.dispose()

    # Local application interface

    def ptt_push(self) -> None:
        if self.is_receive_only:
            logger.info(f"{self.now:.3f}s: SSRC {self.ssrc} receive-only, request denied locally")
            self.notify_denied(DenyCause.LOCAL)
            return
        self._state.ptt_push(self)

    def ptt_release(self) -> None:
        self._state.ptt_release(self)

    def accept_grant(self) -> None:
        self._state.accept_grant(self)

    def send_floor_queue_position_request(self) -> None:
        self._state.send_floor_queue_position_request(self)

    def media_ready(self, packet: RTPPacket) -> bool:
        """
        Offer a media packet for transmission.

        Returns:
            True if sent, False if the participant does not hold the floor
        """
        return self._state.media_ready(self, packet.with_ssrc(self.ssrc))

    # Incoming traffic

    def receive(self, message: Union[FloorMessage, RTPPacket]) -> None:
        if isinstance(message, RTPPacket):
            self.media_received.emit(message)
            return

        self.message_received.emit(message)
        logger.debug(f"{self.now:.3f}s: SSRC {self.ssrc} received {message}")

        if message.ack_required and message.subtype is not FloorSubtype.ACK:
            self.send(FloorAck(ssrc=self.ssrc, acked_subtype=message.subtype))

        subtype = message.subtype
        if subtype is FloorSubtype.GRANTED:
            if message.ssrc != self.ssrc:
                self.ignore(message)
                return
            self._state.receive_floor_granted(self, message)
        elif subtype is FloorSubtype.DENY:
            self._state.receive_floor_deny(self, message)
        elif subtype is FloorSubtype.IDLE:
            self.current_talker = None
            self._state.receive_floor_idle(self, message)
        elif subtype is FloorSubtype.TAKEN:
            self.current_talker = message.ssrc
            self._state.receive_floor_taken(self, message)
        elif subtype is FloorSubtype.REVOKE:
            self._state.receive_floor_revoke(self, message)
        elif subtype is FloorSubtype.QUEUE_POSITION_INFO:
            self._state.receive_floor_queue_position_info(self, message)
        elif subtype is FloorSubtype.ACK:
            logger.debug(f"{self.now:.3f}s: SSRC {self.ssrc} got Ack for {message.acked_subtype.value}")
        else:
            self.ignore(message)

    def __repr__(self) -> str:
        return f"FloorParticipant(ssrc={self.ssrc}, call={self.call_id}, state={self._state.name})"
