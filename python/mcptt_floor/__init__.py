"""
MCPTT Floor Control - floor arbitration for push-to-talk group calls.

Models who may transmit media in a half-duplex group call:
- Arbitrator state machine (grant, deny, queue, revoke, preemption)
- Participant state machine (request, accept, release, retransmission)
- Logical-time scheduler, timers, retry counters and request queue
- Floor event streaming and Prometheus metrics

Usage:
    python -m mcptt_floor

Environment Variables:
    MCPTT_LOG_LEVEL - Log level (DEBUG, INFO, WARNING, ERROR)
    MCPTT_WS_URL - Floor event stream endpoint
    MCPTT_METRICS_PORT - Prometheus endpoint port (0 disables)
"""

__version__ = "1.0.0"

from .config import FloorConfig, get_config
from .core import LogicalScheduler
from .floor import FloorArbitrator, FloorParticipant, is_preemptive
from .protocol import CallType
from .server import FloorServer
from .simulation import FloorSimulation

__all__ = [
    "FloorConfig",
    "get_config",
    "LogicalScheduler",
    "FloorArbitrator",
    "FloorParticipant",
    "is_preemptive",
    "CallType",
    "FloorServer",
    "FloorSimulation",
]
