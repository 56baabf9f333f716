"""
Floor control configuration with environment variable support.

Timer delays are in logical seconds.

Environment Variables:
    MCPTT_T1 .. MCPTT_T20 - Arbitrator timer delays (T1, T2, T3, T4, T7, T20)
    MCPTT_C7, MCPTT_C20 - Arbitrator counter limits
    MCPTT_T100, MCPTT_T101, MCPTT_T104, MCPTT_T132 - Participant timer delays
    MCPTT_C100, MCPTT_C101, MCPTT_C104 - Participant counter limits
    MCPTT_ACK_REQUIRED - Granted messages require an Ack (true/false)
    MCPTT_DUAL_FLOOR - Enable dual floor control (true/false)
    MCPTT_AUDIO_CUT_IN - Any request from a non-holder revokes the talker (true/false)
    MCPTT_QUEUEING - Enable request queueing (true/false)
    MCPTT_QUEUE_CAPACITY - Maximum queued requests per call
    MCPTT_LATENCY, MCPTT_LOSS_RATE, MCPTT_SEED - In-memory channel behaviour
    MCPTT_WS_URL, MCPTT_WS_URL_1, ... - Floor event stream endpoints
    MCPTT_METRICS_PORT - Prometheus endpoint port (0 disables)
    MCPTT_DEBUG - Enable debug logging (true/false)
"""

import logging
import os
from dataclasses import dataclass, field, fields
from typing import List, Optional

from ..core.errors import ConfigurationError

logger = logging.getLogger("mcptt.config")


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


def _env_int(name: str, default: str) -> int:
    return int(os.getenv(name, default))


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _get_seed_from_env() -> Optional[int]:
    value = os.getenv("MCPTT_SEED")
    return int(value) if value else None


def _get_ws_urls_from_env() -> List[str]:
    """Collect event stream URLs from environment variables."""
    urls = []

    main_url = os.getenv("MCPTT_WS_URL")
    if main_url:
        urls.append(main_url)

    # MCPTT_WS_URL_1, MCPTT_WS_URL_2, ...
    i = 1
    while True:
        url = os.getenv(f"MCPTT_WS_URL_{i}")
        if not url:
            break
        urls.append(url)
        i += 1

    return urls


_DELAY_FIELDS = ("t1", "t2", "t3", "t4", "t7", "t20", "t100", "t101", "t104", "t132", "latency")
_LIMIT_FIELDS = ("c7", "c20", "c100", "c101", "c104", "queue_capacity")


@dataclass
class FloorConfig:
    """Floor control configuration."""

    # Arbitrator timers
    t1: float = field(default_factory=lambda: _env_float("MCPTT_T1", "4.0"))  # revoke resend
    t2: float = field(default_factory=lambda: _env_float("MCPTT_T2", "30.0"))  # max hold
    t3: float = field(default_factory=lambda: _env_float("MCPTT_T3", "3.0"))  # revoke hard stop
    t4: float = field(default_factory=lambda: _env_float("MCPTT_T4", "30.0"))  # queue keep-alive
    t7: float = field(default_factory=lambda: _env_float("MCPTT_T7", "1.0"))  # idle re-announce
    t20: float = field(default_factory=lambda: _env_float("MCPTT_T20", "1.0"))  # granted resend

    # Arbitrator counters
    c7: int = field(default_factory=lambda: _env_int("MCPTT_C7", "10"))
    c20: int = field(default_factory=lambda: _env_int("MCPTT_C20", "3"))

    # Arbitrator behaviour
    ack_required: bool = field(default_factory=lambda: _env_bool("MCPTT_ACK_REQUIRED", "false"))
    dual_floor_supported: bool = field(default_factory=lambda: _env_bool("MCPTT_DUAL_FLOOR", "false"))
    audio_cut_in: bool = field(default_factory=lambda: _env_bool("MCPTT_AUDIO_CUT_IN", "false"))
    queueing_enabled: bool = field(default_factory=lambda: _env_bool("MCPTT_QUEUEING", "true"))
    queue_capacity: int = field(default_factory=lambda: _env_int("MCPTT_QUEUE_CAPACITY", "16"))

    # Participant timers
    t100: float = field(default_factory=lambda: _env_float("MCPTT_T100", "0.04"))  # release resend
    t101: float = field(default_factory=lambda: _env_float("MCPTT_T101", "0.04"))  # request resend
    t104: float = field(default_factory=lambda: _env_float("MCPTT_T104", "0.08"))  # queue position
    t132: float = field(default_factory=lambda: _env_float("MCPTT_T132", "2.0"))  # grant acceptance

    # Participant counters
    c100: int = field(default_factory=lambda: _env_int("MCPTT_C100", "3"))
    c101: int = field(default_factory=lambda: _env_int("MCPTT_C101", "3"))
    c104: int = field(default_factory=lambda: _env_int("MCPTT_C104", "3"))

    participant_priority: int = field(default_factory=lambda: _env_int("MCPTT_PRIORITY", "1"))

    # In-memory channel
    latency: float = field(default_factory=lambda: _env_float("MCPTT_LATENCY", "0.005"))
    loss_rate: float = field(default_factory=lambda: _env_float("MCPTT_LOSS_RATE", "0.0"))
    seed: Optional[int] = field(default_factory=_get_seed_from_env)

    # Floor event stream
    ws_urls: List[str] = field(default_factory=_get_ws_urls_from_env)
    ws_reconnect_interval: float = field(
        default_factory=lambda: _env_float("MCPTT_WS_RECONNECT_INTERVAL", "5.0")
    )
    ws_queue_maxsize: int = field(default_factory=lambda: _env_int("MCPTT_WS_QUEUE_MAXSIZE", "1000"))

    # Metrics
    metrics_port: int = field(default_factory=lambda: _env_int("MCPTT_METRICS_PORT", "0"))

    # Debug
    debug: bool = field(default_factory=lambda: _env_bool("MCPTT_DEBUG", "false"))

    def __post_init__(self):
        """
        Validate values after initialization.

        Raises:
            ConfigurationError: If a delay is negative, a limit is below 1
                or the loss rate is outside [0, 1)
        """
        for name in _DELAY_FIELDS:
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {getattr(self, name)}")

        for name in _LIMIT_FIELDS:
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be >= 1, got {getattr(self, name)}")

        if not 0.0 <= self.loss_rate < 1.0:
            raise ConfigurationError(f"loss_rate must be in [0, 1), got {self.loss_rate}")

        if self.t3 <= 0 and self.t1 <= 0:
            logger.warning("T1 and T3 are both zero; revocation completes immediately")

    @property
    def primary_ws_url(self) -> Optional[str]:
        """Get the primary event stream URL."""
        return self.ws_urls[0] if self.ws_urls else None

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# Singleton config instance
_config: Optional[FloorConfig] = None


def get_config() -> FloorConfig:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = FloorConfig()
    return _config


def reset_config():
    """Reset the global config (useful for testing)."""
    global _config
    _config = None
