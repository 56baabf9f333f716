"""End-to-end tests over the in-memory channel."""

import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))

from dataclasses import replace

from mcptt_floor.core import CallIdOutOfRangeError, CallNotFoundError
from mcptt_floor.floor import ArbitratorStateId, ParticipantStateId
from mcptt_floor.protocol import (
    CallType,
    FloorQueuePositionInfo,
    FloorRequest,
    FloorRevoke,
    FloorTaken,
    RevokeCause,
    RTPPacket,
)
from mcptt_floor.server import CallIdAllocator, CallSession
from mcptt_floor.simulation import FloorSimulation


def build_call(config, call_type=CallType.BASIC_GROUP, **clients):
    """Create a call with clients given as name=(ssrc, priority[, call_type])."""
    sim = FloorSimulation(config)
    call = sim.create_call(call_type, originator=1)
    participants = {}
    for name, values in clients.items():
        ssrc, priority = values[0], values[1]
        client_type = values[2] if len(values) > 2 else None
        participants[name] = sim.add_client(call.call_id, ssrc=ssrc, priority=priority, call_type=client_type)
    sim.initialize_call(call.call_id)
    sim.run_for(0.1)
    return sim, call, participants


def record_trace(sim):
    """Capture server rx/tx as (direction, peer, message), Taken excluded."""
    trace = []
    sim.server.rx.subscribe(lambda call_id, ssrc, msg: trace.append(("rx", ssrc, msg)))
    sim.server.tx.subscribe(lambda call_id, dest, msg: trace.append(("tx", dest, msg)))
    return trace


class TestPreemptionScenario:
    """Test the emergency preemption flow."""

    def test_message_sequence(self, floor_config):
        """Test A granted, B preempts, A releases, B granted."""
        sim, call, p = build_call(
            floor_config,
            a=(1, 3),
            b=(2, 5, CallType.EMERGENCY_GROUP),
            c=(3, 1),
        )
        trace = record_trace(sim)

        p["a"].ptt_push()
        sim.run_for(0.5)
        p["b"].ptt_push()
        sim.run_for(0.5)

        steps = [
            (direction, type(msg).__name__, getattr(msg, "ssrc", None))
            for direction, _, msg in trace
            if not isinstance(msg, FloorTaken)
        ]
        assert steps == [
            ("rx", "FloorRequest", 1),
            ("tx", "FloorGranted", 1),
            ("rx", "FloorRequest", 2),
            ("tx", "FloorRevoke", None),
            ("rx", "FloorRelease", 1),
            ("tx", "FloorIdle", None),
            ("tx", "FloorGranted", 2),
        ]

        revoke = next(msg for _, _, msg in trace if isinstance(msg, FloorRevoke))
        assert revoke.cause is RevokeCause.PREEMPTED
        assert p["a"].state is ParticipantStateId.IDLE
        assert p["b"].state is ParticipantStateId.HAS_PERMISSION
        assert call.arbitrator.stored_ssrc == 2

    def test_revoke_addressed_to_holder(self, floor_config):
        sim, call, p = build_call(floor_config, a=(1, 3), b=(2, 5, CallType.EMERGENCY_GROUP))
        trace = record_trace(sim)

        p["a"].ptt_push()
        sim.run_for(0.5)
        p["b"].ptt_push()
        sim.run_for(0.5)

        destinations = [dest for direction, dest, msg in trace if isinstance(msg, FloorRevoke)]
        assert destinations == [1]

    def test_emergency_upgrades_call(self, floor_config):
        sim, call, p = build_call(floor_config, a=(1, 3), b=(2, 5, CallType.EMERGENCY_GROUP))

        p["a"].ptt_push()
        sim.run_for(0.5)
        p["b"].ptt_push()
        sim.run_for(0.5)

        assert call.arbitrator.indicator & CallType.EMERGENCY_GROUP.indicator

    def test_slow_revocation_keeps_preemptor_waiting(self, floor_config):
        """Test a preemptor outlasting C101 while the holder cannot be reached."""
        sim, call, p = build_call(floor_config, a=(1, 3), b=(2, 5, CallType.EMERGENCY_GROUP))
        failures = []
        states = []
        p["b"].floor_failed.subscribe(failures.append)
        p["b"].state_changed.subscribe(lambda change: states.append(change.to_state))

        p["a"].ptt_push()
        sim.run_for(0.5)
        p["a"].port.on_receive(lambda message: None)
        p["b"].ptt_push()
        sim.run_for(5.0)

        assert failures == []
        assert "Queued" in states
        assert p["b"].state is ParticipantStateId.HAS_PERMISSION
        assert call.arbitrator.state is ArbitratorStateId.TAKEN
        assert call.arbitrator.stored_ssrc == 2

    def test_holder_missing_revoke_gives_up_floor(self, floor_config):
        """Test a holder that only lost the Revoke stops holding once the floor moves on."""
        sim, call, p = build_call(floor_config, a=(1, 3), b=(2, 5, CallType.EMERGENCY_GROUP))
        a = p["a"]

        a.ptt_push()
        sim.run_for(0.5)
        a.port.on_receive(lambda message: None if isinstance(message, FloorRevoke) else a.receive(message))
        p["b"].ptt_push()
        sim.run_for(5.0)

        assert a.state is ParticipantStateId.IDLE
        assert a.media_ready(RTPPacket(payload=b"late")) is False
        assert p["b"].state is ParticipantStateId.HAS_PERMISSION
        assert call.arbitrator.stored_ssrc == 2

    def test_grant_to_departed_requester_returned(self, floor_config):
        """Test a Granted nobody is waiting for is released back to the arbitrator."""
        sim, call, p = build_call(floor_config, a=(1, 3), b=(2, 3))
        b = p["b"]

        p["a"].ptt_push()
        sim.run_for(0.5)
        b.port.on_receive(
            lambda message: None if isinstance(message, FloorQueuePositionInfo) else b.receive(message)
        )
        b.ptt_push()
        sim.run_for(0.5)
        assert b.state is ParticipantStateId.IDLE
        p["a"].ptt_release()
        sim.run_for(0.5)

        assert b.state is ParticipantStateId.IDLE
        assert call.arbitrator.state is ArbitratorStateId.IDLE
        assert call.arbitrator.stored_ssrc is None


class TestFloorScenarios:
    """Test common floor flows end to end."""

    def test_equal_priority_race(self, floor_config):
        """Test simultaneous equal requests: one granted, one queued first."""
        sim, call, p = build_call(floor_config, a=(1, 3), b=(2, 3))

        p["a"].ptt_push()
        p["b"].ptt_push()
        sim.run_for(0.5)

        assert p["a"].state is ParticipantStateId.HAS_PERMISSION
        assert p["b"].state is ParticipantStateId.QUEUED
        assert p["b"].queue_position == 1

    def test_queued_member_granted_after_release(self, floor_config):
        sim, call, p = build_call(floor_config, a=(1, 3), b=(2, 3))
        granted = []
        p["b"].floor_granted.subscribe(granted.append)

        p["a"].ptt_push()
        p["b"].ptt_push()
        sim.run_for(0.5)
        p["a"].ptt_release()
        sim.run_for(0.5)

        assert p["a"].state is ParticipantStateId.IDLE
        assert p["b"].state is ParticipantStateId.HAS_PERMISSION
        assert len(granted) == 1
        assert call.arbitrator.stored_ssrc == 2

    def test_at_most_one_holder(self, floor_config):
        """Test no two participants hold the floor at any time."""
        sim, call, p = build_call(floor_config, a=(1, 3), b=(2, 4), c=(3, 2))
        holders_seen = []

        def check(_):
            holders = [x.ssrc for x in p.values() if x.has_permission]
            holders_seen.append(holders)
            assert len(holders) <= 1

        for participant in p.values():
            participant.state_changed.subscribe(check)

        p["a"].ptt_push()
        sim.run_for(0.2)
        p["c"].ptt_push()
        p["b"].ptt_push()
        sim.run_for(0.5)
        p["b"].ptt_release()
        sim.run_for(0.5)
        p["c"].ptt_release()
        sim.run_for(0.5)

        assert holders_seen
        assert all(len(h) <= 1 for h in holders_seen)

    def test_media_relayed_from_holder(self, floor_config):
        sim, call, p = build_call(floor_config, a=(1, 3), b=(2, 3))
        received = []
        p["b"].media_received.subscribe(received.append)

        p["a"].ptt_push()
        sim.run_for(0.2)
        sent = p["a"].media_ready(RTPPacket(payload=b"voice"))
        sim.run_for(0.1)

        assert sent is True
        assert len(received) == 1
        assert received[0].ssrc == 1
        assert received[0].payload == b"voice"

    def test_media_blocked_without_floor(self, floor_config):
        sim, call, p = build_call(floor_config, a=(1, 3), b=(2, 3))
        received = []
        p["b"].media_received.subscribe(received.append)

        assert p["a"].media_ready(RTPPacket(payload=b"voice")) is False
        sim.run_for(0.1)

        assert received == []

    def test_implicit_grant(self, floor_config):
        """Test the originator holds the floor without a request."""
        sim = FloorSimulation(floor_config)
        call = sim.create_call(CallType.BASIC_GROUP, originator=1)
        a = sim.add_client(call.call_id, ssrc=1, priority=3, implicit_request=True)
        b = sim.add_client(call.call_id, ssrc=2, priority=3)
        trace = record_trace(sim)

        sim.initialize_call(call.call_id)
        sim.run_for(0.1)

        assert a.state is ParticipantStateId.HAS_PERMISSION
        assert b.current_talker == 1
        assert not any(isinstance(msg, FloorRequest) for _, _, msg in trace)

    def test_broadcast_terminating_member_denied_locally(self, floor_config):
        sim, call, p = build_call(floor_config, CallType.BROADCAST_GROUP, a=(1, 3), b=(2, 3))
        denials = []
        p["b"].floor_denied.subscribe(denials.append)
        trace = record_trace(sim)

        p["b"].ptt_push()
        sim.run_for(0.2)

        assert len(denials) == 1
        assert trace == []
        assert p["b"].state is ParticipantStateId.IDLE

    def test_leave_while_holding(self, floor_config):
        """Test a holder leaving frees the floor for the queue."""
        sim, call, p = build_call(floor_config, a=(1, 3), b=(2, 3))

        p["a"].ptt_push()
        p["b"].ptt_push()
        sim.run_for(0.5)
        sim.leave(call.call_id, 1)
        sim.run_for(0.5)

        assert 1 not in call.arbitrator.participants
        assert call.arbitrator.stored_ssrc == 2
        assert p["b"].state is ParticipantStateId.HAS_PERMISSION

    def test_lossy_channel_is_reproducible(self, floor_config):
        """Test a seeded lossy run gives the same outcome twice."""
        config = replace(floor_config, loss_rate=0.3, seed=7)

        outcomes = []
        for _ in range(2):
            sim, call, p = build_call(config, a=(1, 3), b=(2, 3))
            p["a"].ptt_push()
            p["b"].ptt_push()
            sim.run_for(1.0)
            outcomes.append((
                call.arbitrator.stored_ssrc,
                p["a"].state,
                p["b"].state,
                sim.channel.get_stats()["lost_count"],
            ))

        assert outcomes[0] == outcomes[1]


class TestCallLifecycle:
    """Test call creation and release through the server."""

    def test_release_call_disposes_timers(self, floor_config):
        sim, call, p = build_call(floor_config, a=(1, 3), b=(2, 3))
        released = []
        sim.server.call_released.subscribe(released.append)
        p["a"].ptt_push()
        sim.run_for(0.2)

        sim.release_call(call.call_id)

        assert len(released) == 1 and released[0] is call
        assert call.released
        assert call.arbitrator.state is ArbitratorStateId.START_STOP
        assert all(x.state is ParticipantStateId.START_STOP for x in p.values())
        assert not any(t.is_running for t in call.timers())
        assert sim.server.active_calls == 0
        with pytest.raises(CallNotFoundError):
            sim.server.get_call(call.call_id)

    def test_call_ids_unique(self, floor_config):
        sim = FloorSimulation(floor_config)
        ids = {sim.create_call().call_id for _ in range(5)}
        assert len(ids) == 5

    def test_unallocated_call_id_rejected(self, floor_config):
        sim = FloorSimulation(floor_config)
        session = CallSession(call_id=0x10000, call_type=CallType.BASIC_GROUP, originator=None)
        with pytest.raises(CallIdOutOfRangeError):
            sim.server.add_call(session)

    def test_wait_for_members(self, floor_config):
        """Test requests are not granted before every member is ready."""
        sim = FloorSimulation(floor_config)
        call = sim.create_call(CallType.BASIC_GROUP, originator=1, members=[1, 2], wait_for_members=True)
        sim.add_client(call.call_id, ssrc=1, priority=3)

        assert call.arbitrator.state is ArbitratorStateId.START_STOP

        sim.add_client(call.call_id, ssrc=2, priority=3)
        sim.initialize_call(call.call_id)

        assert call.arbitrator.state is ArbitratorStateId.IDLE

    def test_server_stats(self, floor_config):
        sim, call, p = build_call(floor_config, a=(1, 3), b=(2, 3))
        p["a"].ptt_push()
        p["b"].ptt_push()
        sim.run_for(0.5)

        stats = sim.server.get_stats()

        assert stats["active_calls"] == 1
        assert stats["calls"][call.call_id] == {
            "state": "Taken",
            "holder": 1,
            "queued": 1,
            "members": 2,
        }


class TestCallIdAllocator:
    """Test CallIdAllocator class."""

    def test_allocate_sequential(self):
        allocator = CallIdAllocator(start=1, end=3)
        assert [allocator.allocate() for _ in range(3)] == [1, 2, 3]

    def test_exhaustion(self):
        allocator = CallIdAllocator(start=1, end=2)
        allocator.allocate()
        allocator.allocate()
        with pytest.raises(CallIdOutOfRangeError):
            allocator.allocate()

    def test_released_id_not_reused(self):
        allocator = CallIdAllocator(start=1, end=5)
        first = allocator.allocate()
        allocator.release(first)
        assert allocator.allocate() == first + 1
        assert allocator.allocated_count == 1

    def test_validate(self):
        allocator = CallIdAllocator(start=1, end=10)
        with pytest.raises(CallIdOutOfRangeError):
            allocator.validate(0)
        with pytest.raises(CallIdOutOfRangeError):
            allocator.validate(5)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
