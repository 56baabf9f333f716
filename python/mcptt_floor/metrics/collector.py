"""
Prometheus Metrics Collector for floor control.

Provides metrics for monitoring:
- Active calls
- Floor requests by outcome, grants and revocations
- Retransmission failures on the participant side
- Queue depth and floor hold duration (logical seconds)
"""

import logging
from typing import Dict, Optional

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from ..floor.notifications import FailureNotification, StateChange
from ..protocol.messages import FloorDeny, FloorGranted, FloorQueuePositionInfo, FloorRevoke
from ..server.call_session import CallSession

logger = logging.getLogger("mcptt.metrics")


# Call metrics
ACTIVE_CALLS = Gauge(
    'mcptt_active_calls',
    'Number of currently active calls'
)
CALLS_TOTAL = Counter(
    'mcptt_calls_total',
    'Total number of calls created',
    ['call_type']
)

# Floor metrics
FLOOR_REQUESTS_TOTAL = Counter(
    'mcptt_floor_requests_total',
    'Floor requests answered by the arbitrator',
    ['outcome']  # 'granted', 'queued', 'denied'
)
FLOOR_REVOKES_TOTAL = Counter(
    'mcptt_floor_revokes_total',
    'Floor revocations sent',
    ['cause']
)
FLOOR_FAILURES_TOTAL = Counter(
    'mcptt_floor_failures_total',
    'Participant retransmissions abandoned',
    ['counter']  # 'C100', 'C101', 'C104'
)
FLOOR_QUEUE_DEPTH = Gauge(
    'mcptt_floor_queue_depth',
    'Queued floor requests across all calls'
)
FLOOR_HOLD_DURATION = Histogram(
    'mcptt_floor_hold_duration_seconds',
    'Logical time a holder kept the floor',
    buckets=[0.5, 1, 2, 5, 10, 30, 60, 120]
)
STATE_TRANSITIONS_TOTAL = Counter(
    'mcptt_state_transitions_total',
    'State machine transitions',
    ['machine', 'to_state']
)


class FloorMetrics:
    """
    Centralized metrics collector for floor control.

    attach_call() subscribes to a call's hooks; start() serves the
    Prometheus HTTP endpoint.
    """

    def __init__(self, port: int = 9090, host: str = "0.0.0.0"):
        """
        Initialize metrics collector.

        Args:
            port: Port for Prometheus HTTP server
            host: Host to bind to
        """
        self.port = port
        self.host = host
        self._started = False
        self._taken_since: Dict[int, float] = {}
        self._queue_depths: Dict[int, int] = {}

    def start(self) -> bool:
        """
        Start the Prometheus HTTP server.

        Returns:
            True if started successfully
        """
        if self._started:
            return True

        try:
            start_http_server(self.port, addr=self.host)
            self._started = True
            logger.info(f"Prometheus metrics server started on {self.host}:{self.port}")
            return True
        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False

    def attach_call(self, session: CallSession) -> None:
        """Record metrics for every floor event of a call."""
        call_id = session.call_id
        arbitrator = session.arbitrator
        self.call_started(session.call_type.value)

        arbitrator.tx.subscribe(lambda _cid, _dest, msg: self.message_sent(msg))
        arbitrator.state_changed.subscribe(self.state_changed)
        arbitrator.state_changed.subscribe(
            lambda change: self.update_queue_depth(call_id, len(arbitrator.queue))
        )
        arbitrator.tx.subscribe(
            lambda _cid, _dest, msg: self.update_queue_depth(call_id, len(arbitrator.queue))
        )
        for participant in session.participants.values():
            self.attach_participant(participant)

    def attach_participant(self, participant) -> None:
        participant.state_changed.subscribe(self.state_changed)
        participant.floor_failed.subscribe(self.floor_failed)

    def detach_call(self, session: CallSession) -> None:
        """Close out a released call."""
        self.call_ended()
        self._taken_since.pop(session.call_id, None)
        self.update_queue_depth(session.call_id, 0)
        self._queue_depths.pop(session.call_id, None)

    # Call metrics
    def call_started(self, call_type: str) -> None:
        ACTIVE_CALLS.inc()
        CALLS_TOTAL.labels(call_type=call_type).inc()

    def call_ended(self) -> None:
        ACTIVE_CALLS.dec()

    # Floor metrics
    def message_sent(self, message) -> None:
        """Classify an arbitrator message."""
        if isinstance(message, FloorGranted):
            FLOOR_REQUESTS_TOTAL.labels(outcome="granted").inc()
        elif isinstance(message, FloorDeny):
            FLOOR_REQUESTS_TOTAL.labels(outcome="denied").inc()
        elif isinstance(message, FloorRevoke):
            FLOOR_REVOKES_TOTAL.labels(cause=message.cause.name).inc()
        elif isinstance(message, FloorQueuePositionInfo):
            FLOOR_REQUESTS_TOTAL.labels(outcome="queued").inc()

    def state_changed(self, change: StateChange) -> None:
        STATE_TRANSITIONS_TOTAL.labels(machine=change.machine, to_state=change.to_state).inc()
        if change.machine != "FloorArbitrator":
            return

        if change.to_state not in ("Taken", "Idle", "Releasing"):
            return

        # PendingRevoke -> Taken promotes the dual holder: one hold ends, another starts.
        since = self._taken_since.pop(change.call_id, None)
        if since is not None:
            FLOOR_HOLD_DURATION.observe(change.time - since)
        if change.to_state == "Taken":
            self._taken_since[change.call_id] = change.time

    def floor_failed(self, failure: FailureNotification) -> None:
        FLOOR_FAILURES_TOTAL.labels(counter=failure.counter).inc()

    def update_queue_depth(self, call_id: int, depth: int) -> None:
        self._queue_depths[call_id] = depth
        FLOOR_QUEUE_DEPTH.set(sum(self._queue_depths.values()))

    @property
    def is_started(self) -> bool:
        return self._started


# Global instance
_metrics: Optional[FloorMetrics] = None


def get_metrics() -> FloorMetrics:
    """Get or create the global metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = FloorMetrics()
    return _metrics
