"""Configuration module."""
from .settings import FloorConfig, get_config, reset_config
from .logging import setup_logging, get_logger

__all__ = ["FloorConfig", "get_config", "reset_config", "setup_logging", "get_logger"]
