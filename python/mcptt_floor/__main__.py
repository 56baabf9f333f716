"""
Floor control scenario runner.

Runs the preemption scenario on the logical clock: A takes the floor, an
emergency request from B preempts it, and B is granted once A releases.

Usage:
    python -m mcptt_floor

Environment Variables:
    MCPTT_LOG_LEVEL - Log level (DEBUG, INFO, WARNING, ERROR)
    MCPTT_WS_URL - Floor event stream endpoint (optional)
    MCPTT_METRICS_PORT - Prometheus endpoint port (0 disables)
"""

import asyncio
import sys

from .config import FloorConfig, get_config, setup_logging
from .metrics import get_metrics
from .protocol import CallType
from .simulation import FloorSimulation
from .websocket import FloorEventStream

logger = setup_logging()


def run_preemption_scenario(config: FloorConfig, stream=None) -> FloorSimulation:
    """Run the scenario and log the arbitrator's message trace."""
    sim = FloorSimulation(config)
    call = sim.create_call(CallType.BASIC_GROUP, originator=1, members=[1, 2, 3])
    a = sim.add_client(call.call_id, ssrc=1, priority=3)
    b = sim.add_client(call.call_id, ssrc=2, priority=5, call_type=CallType.EMERGENCY_GROUP)
    sim.add_client(call.call_id, ssrc=3, priority=1)

    if config.metrics_port:
        get_metrics().attach_call(call)
    if stream is not None:
        stream.attach_call(call)

    sim.server.rx.subscribe(
        lambda call_id, ssrc, msg: logger.info(f"{sim.now:.3f}s call {call_id} <- {ssrc}: {msg}")
    )
    sim.server.tx.subscribe(
        lambda call_id, dest, msg: logger.info(f"{sim.now:.3f}s call {call_id} -> {dest}: {msg}")
    )

    sim.initialize_call(call.call_id)
    sim.run_for(0.1)

    a.ptt_push()
    sim.run_for(0.5)

    b.ptt_push()
    sim.run_for(0.5)

    logger.info(f"Final holder: SSRC {call.arbitrator.stored_ssrc} ({call.arbitrator.state.value})")

    b.ptt_release()
    sim.run_for(0.5)
    sim.release_call(call.call_id)
    if config.metrics_port:
        get_metrics().detach_call(call)
    return sim


async def main():
    """Main entry point."""
    config = get_config()

    if config.metrics_port:
        metrics = get_metrics()
        metrics.port = config.metrics_port
        if not metrics.start():
            sys.exit(1)

    stream = None
    if config.ws_urls:
        stream = FloorEventStream(
            config.ws_urls,
            queue_maxsize=config.ws_queue_maxsize,
            reconnect_interval=config.ws_reconnect_interval,
        )
        await stream.start()

    try:
        sim = run_preemption_scenario(config, stream)
        logger.info(f"Channel: {sim.channel.get_stats()}")
        if stream is not None:
            await stream.flush()
    finally:
        if stream is not None:
            await stream.stop()


def cli():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    cli()
