"""Metrics collection module."""
from .collector import FloorMetrics, get_metrics

__all__ = ["FloorMetrics", "get_metrics"]
