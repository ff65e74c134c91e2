"""
Utility helpers shared across TierCache packages.
"""

from .latency import LatencySimulator
from .logging import (
    configure_logging,
    correlation_scope,
    get_correlation_id,
    get_logger,
    set_correlation_id,
    time_call,
)
from .stats import TierStats

__all__ = [
    "LatencySimulator",
    "TierStats",
    "configure_logging",
    "correlation_scope",
    "get_correlation_id",
    "get_logger",
    "set_correlation_id",
    "time_call",
]
