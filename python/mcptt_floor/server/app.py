"""
Floor control server.

Owns the calls hosted on one server: allocates call ids, creates an
arbitrator per call, routes participant traffic to it and tears calls
down in two phases. Every message in or out of any arbitrator is
republished on the server's rx/tx traces tagged with its call id.
"""

import logging
from typing import Dict, Iterable, Optional

from ..config.settings import FloorConfig
from ..core.errors import CallNotFoundError, ConfigurationError
from ..core.observers import Hook
from ..core.scheduler import LogicalScheduler
from ..floor.arbitrator import FloorArbitrator
from ..floor.towards_participant import TowardsParticipant
from ..network.channel import ChannelEndpoint
from ..protocol.call_type import CallType
from .call_ids import CallIdAllocator
from .call_session import CallSession

logger = logging.getLogger("mcptt.server")


class FloorServer:
    """
    Hosts floor arbitrators for many calls.

    Hooks:
        rx(call_id, ssrc, FloorMessage)
        tx(call_id, destination, FloorMessage)
        call_created(CallSession)
        call_released(CallSession)
    """

    def __init__(
        self,
        scheduler: LogicalScheduler,
        config: Optional[FloorConfig] = None,
        call_ids: Optional[CallIdAllocator] = None,
    ):
        self.scheduler = scheduler
        self.config = config or FloorConfig()
        self.call_ids = call_ids or CallIdAllocator()
        self.calls: Dict[int, CallSession] = {}

        self.rx = Hook("server.rx")
        self.tx = Hook("server.tx")
        self.call_created = Hook("server.call_created")
        self.call_released = Hook("server.call_released")

    @property
    def active_calls(self) -> int:
        return len(self.calls)

    def create_call(
        self,
        call_type: CallType = CallType.BASIC_GROUP,
        originator: Optional[int] = None,
        members: Iterable[int] = (),
        wait_for_members: bool = False,
    ) -> CallSession:
        """
        Create a call with a fresh id and its arbitrator.

        Args:
            call_type: Call type negotiated by call control
            originator: SSRC of the calling party
            members: SSRCs invited to the call
            wait_for_members: Keep the arbitrator in Initialising until
                every member has completed call setup

        Returns:
            The registered CallSession
        """
        call_id = self.call_ids.allocate()
        members = list(members)
        if originator is not None and originator not in members:
            members.insert(0, originator)

        session = CallSession(
            call_id=call_id,
            call_type=call_type,
            originator=originator,
            members=members,
            start_time=self.scheduler.now,
        )
        session.arbitrator = FloorArbitrator(
            call_id,
            call_type,
            self.scheduler,
            self.config,
            expected_ssrcs=members if wait_for_members else None,
        )
        self.add_call(session)
        return session

    def add_call(self, session: CallSession) -> None:
        """
        Register a call.

        Raises:
            CallIdOutOfRangeError: If the call id was never allocated
            ConfigurationError: If the id is already in use or the call has
                no arbitrator
        """
        self.call_ids.validate(session.call_id)
        if session.call_id in self.calls:
            raise ConfigurationError(f"Call {session.call_id} already exists")
        if session.arbitrator is None:
            raise ConfigurationError(f"Call {session.call_id} has no arbitrator")

        arbitrator = session.arbitrator
        arbitrator.rx.subscribe(self.rx.emit)
        arbitrator.tx.subscribe(self.tx.emit)
        self.calls[session.call_id] = session

        logger.info(
            f"{self.scheduler.now:.3f}s: call {session.call_id} created "
            f"({session.call_type.value}, originator {session.originator})"
        )
        self.call_created.emit(session)

    def get_call(self, call_id: int) -> CallSession:
        """
        Look up a call.

        Raises:
            CallNotFoundError: If no such call is hosted
        """
        session = self.calls.get(call_id)
        if session is None:
            raise CallNotFoundError(f"Call {call_id} not found")
        return session

    def join(
        self,
        call_id: int,
        ssrc: int,
        port: ChannelEndpoint,
        priority: Optional[int] = None,
        receive_only: bool = False,
    ) -> TowardsParticipant:
        """Add a member's link to a call's arbitrator roster."""
        session = self.get_call(call_id)
        towards = TowardsParticipant(
            ssrc,
            port,
            priority=self.config.participant_priority if priority is None else priority,
            receive_only=receive_only,
        )
        port.on_receive(session.arbitrator.receive)
        session.arbitrator.add_participant(towards)
        if ssrc not in session.members:
            session.members.append(ssrc)
        return towards

    def client_release(self, call_id: int, ssrc: int) -> None:
        session = self.get_call(call_id)
        towards = session.arbitrator.participants.get(ssrc)
        session.arbitrator.client_release(ssrc)
        if towards is not None:
            towards.close()

    def release_call(self, call_id: int) -> CallSession:
        """
        Tear a call down.

        Runs CallRelease1 then CallRelease2 on the arbitrator and every
        participant, then disposes every timer before dropping the call.

        Raises:
            CallNotFoundError: If no such call is hosted
        """
        session = self.get_call(call_id)
        arbitrator = session.arbitrator

        arbitrator.call_release1()
        for participant in session.participants.values():
            participant.call_release1()

        arbitrator.call_release2()
        for participant in session.participants.values():
            participant.call_release2()

        for timer in session.timers():
            timer.dispose()
        for towards in arbitrator.participants.values():
            towards.close()

        session.released = True
        del self.calls[call_id]
        self.call_ids.release(call_id)

        logger.info(f"{self.scheduler.now:.3f}s: call {call_id} released")
        self.call_released.emit(session)
        return session

    def release_all(self) -> None:
        for call_id in list(self.calls):
            self.release_call(call_id)

    def get_stats(self) -> dict:
        """Get server statistics."""
        return {
            "active_calls": self.active_calls,
            "allocated_call_ids": self.call_ids.allocated_count,
            "calls": {
                call_id: {
                    "state": session.arbitrator.state.value,
                    "holder": session.arbitrator.stored_ssrc,
                    "queued": len(session.arbitrator.queue),
                    "members": len(session.arbitrator.participants),
                }
                for call_id, session in self.calls.items()
            },
        }
