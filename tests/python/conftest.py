"""Pytest configuration and fixtures."""

import os
import sys
import pytest

# Add python directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))


def pytest_configure(config):
    """Configure pytest."""
    os.environ['MCPTT_LOG_LEVEL'] = 'WARNING'
    # Register asyncio marker
    config.addinivalue_line("markers", "asyncio: mark test as async")


@pytest.fixture
def floor_config():
    """Default configuration, independent of the environment."""
    from mcptt_floor.config import FloorConfig
    return FloorConfig(
        latency=0.005,
        loss_rate=0.0,
        seed=1,
        ack_required=False,
        dual_floor_supported=False,
        queueing_enabled=True,
        ws_urls=[],
        metrics_port=0,
    )


@pytest.fixture
def scheduler():
    from mcptt_floor.core import LogicalScheduler
    return LogicalScheduler()


@pytest.fixture
def sample_rtp_packet():
    """Generate sample RTP packet."""
    import struct
    header = struct.pack('!BBHII', 0x80, 0x00, 1234, 160, 0x12345678)
    payload = b'\xff' * 160
    return header + payload
