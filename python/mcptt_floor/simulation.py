"""
Floor control simulation harness.

Wires a logical clock, an in-memory channel, a FloorServer and any number
of client participants together so scenarios can be driven end to end.

Usage:
    sim = FloorSimulation()
    call = sim.create_call(CallType.BASIC_GROUP)
    a = sim.add_client(call.call_id, ssrc=1, priority=3)
    b = sim.add_client(call.call_id, ssrc=2, priority=5)
    sim.initialize_call(call.call_id)
    a.ptt_push()
    sim.run_for(0.1)
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .config.settings import FloorConfig
from .core.scheduler import LogicalScheduler
from .floor.participant import FloorParticipant
from .floor.towards_participant import TowardsParticipant
from .network.channel import ChannelEndpoint, LocalChannel
from .protocol.call_type import CallType
from .server.app import FloorServer
from .server.call_session import CallSession

logger = logging.getLogger("mcptt.simulation")


class FloorSimulation:
    """Scheduler, channel, server and clients for one run."""

    def __init__(
        self,
        config: Optional[FloorConfig] = None,
        scheduler: Optional[LogicalScheduler] = None,
    ):
        self.config = config or FloorConfig()
        self.scheduler = scheduler or LogicalScheduler()
        self.channel = LocalChannel(
            self.scheduler,
            latency=self.config.latency,
            loss_rate=self.config.loss_rate,
            seed=self.config.seed,
        )
        self.server = FloorServer(self.scheduler, self.config)
        self._links: Dict[Tuple[int, int], Tuple[ChannelEndpoint, TowardsParticipant]] = {}

    @property
    def now(self) -> float:
        return self.scheduler.now

    def create_call(
        self,
        call_type: CallType = CallType.BASIC_GROUP,
        originator: Optional[int] = None,
        members: Iterable[int] = (),
        wait_for_members: bool = False,
    ) -> CallSession:
        return self.server.create_call(call_type, originator, members, wait_for_members)

    def add_client(
        self,
        call_id: int,
        ssrc: int,
        priority: Optional[int] = None,
        call_type: Optional[CallType] = None,
        implicit_request: bool = False,
        auto_accept: bool = True,
    ) -> FloorParticipant:
        """
        Join a client to a call over a fresh link.

        Args:
            call_id: Call to join
            ssrc: Client identity
            priority: Floor priority (default from config)
            call_type: Call type the client requests with (default: the
                call's own type; an emergency type here models an
                emergency upgrade by this client)
            implicit_request: Originator expects an implicit grant
            auto_accept: Accept grants received while queued immediately

        Returns:
            The client's FloorParticipant
        """
        session = self.server.get_call(call_id)
        is_originator = session.originator == ssrc
        participant = FloorParticipant(
            ssrc,
            call_id,
            call_type or session.call_type,
            self.scheduler,
            self.config,
            is_originator=is_originator,
            implicit_request=implicit_request,
            priority=priority,
        )

        client_end, server_end = self.channel.create_link(f"client-{ssrc}", f"call-{call_id}/{ssrc}")
        participant.attach(client_end)
        towards = self.server.join(
            call_id,
            ssrc,
            server_end,
            priority=participant.priority,
            receive_only=participant.is_receive_only,
        )
        if auto_accept:
            participant.grant_pending.subscribe(lambda p: p.accept_grant())

        session.add_participant(participant)
        self._links[(call_id, ssrc)] = (client_end, towards)
        return participant

    def initialize_call(self, call_id: int) -> None:
        """Deliver CallInitialized to every joined client and the arbitrator."""
        session = self.server.get_call(call_id)
        arbitrator = session.arbitrator

        for ssrc, participant in session.participants.items():
            _, towards = self._links[(call_id, ssrc)]
            participant.call_initialized()
            arbitrator.call_initialized(towards)

        for ssrc, participant in session.participants.items():
            if participant.is_originator and participant.implicit_request:
                _, towards = self._links[(call_id, ssrc)]
                arbitrator.implicit_floor_request(towards)

    def leave(self, call_id: int, ssrc: int) -> None:
        """A client leaves the call."""
        session = self.server.get_call(call_id)
        participant = session.participants.pop(ssrc)
        participant.call_release1()
        participant.call_release2()
        participant.dispose()
        self.server.client_release(call_id, ssrc)
        client_end, _ = self._links.pop((call_id, ssrc))
        client_end.close()

    def release_call(self, call_id: int) -> CallSession:
        session = self.server.release_call(call_id)
        for ssrc in list(session.participants):
            link = self._links.pop((call_id, ssrc), None)
            if link is not None:
                link[0].close()
        return session

    def participants(self, call_id: int) -> List[FloorParticipant]:
        return list(self.server.get_call(call_id).participants.values())

    def run(self, until: Optional[float] = None) -> int:
        return self.scheduler.run(until)

    def run_for(self, duration: float) -> int:
        return self.scheduler.run_for(duration)
